# Copyright (c) 2015 Alex Richardson
# All rights reserved.
#
# This software was developed by SRI International and the University of
# Cambridge Computer Laboratory under DARPA/AFRL contract FA8750-10-C-0237
# ("CTSRD"), as part of the DARPA CRASH research programme.
#
# This software was developed at the University of Cambridge Computer
# Laboratory with support from a grant from Google, Inc.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions
# are met:
# 1. Redistributions of source code must retain the above copyright
#    notice, this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE AUTHOR AND CONTRIBUTORS ``AS IS AND
# ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED.  IN NO EVENT SHALL THE AUTHOR OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS
# OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION)
# HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT
# LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY
# OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF
# SUCH DAMAGE.

import os
from collections import namedtuple
from enum import Enum

from commandwrapper import warn


class RecordKind(Enum):
    object_output = 'o'  # output of the IR-emitting compiler
    ir_file = 'f'  # output of the IR linker


class ArtifactRecord(namedtuple('ArtifactRecord', ['kind', 'path'])):
    __slots__ = ()

    def line(self):
        return self.kind.value + ':' + self.path + '\n'


class IrDatabase:
    """
    Append-only list of the LLVM IR files produced during a build.

    Many wrapper processes append to the same file concurrently (one per
    translation unit with make -jN). Every record is written with a single
    unbuffered write() on a descriptor opened with O_APPEND so lines from
    different processes never interleave.
    """

    def __init__(self, path):
        self.path = path

    def record(self, records):
        """Append all records whose file exists, returns the number written."""
        written = 0
        try:
            with open(self.path, 'ab', buffering=0) as db:
                for record in records:
                    if self._append(db, record):
                        written += 1
        except OSError as e:
            warn('cannot open DB file for append: ' + str(self.path) + ' (' + str(e) + ')')
        return written

    def appendIfExists(self, record):
        return self.record([record]) == 1

    @staticmethod
    def _append(db, record):
        # the compiler may have failed halfway or the file may never have been created
        if not os.path.exists(record.path):
            return False
        try:
            # file names need not be valid UTF-8, write their original bytes
            line = os.fsencode(record.line())
        except UnicodeError as e:
            warn('cannot record ' + ascii(record.path) + ' (' + str(e) + ')')
            return False
        db.write(line)
        return True


def readDatabase(path):
    """Parse a database file back into records, skipping malformed lines."""
    kinds = {kind.value: kind for kind in RecordKind}
    records = []
    with open(path, encoding='utf-8', errors='surrogateescape') as db:
        for line in db:
            prefix, sep, recordPath = line.rstrip('\n').partition(':')
            if sep and prefix in kinds and recordPath:
                records.append(ArtifactRecord(kinds[prefix], recordPath))
    return records
