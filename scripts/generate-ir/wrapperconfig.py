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
import re
import shlex
from collections import namedtuple

IR_WRAPPER_DIR = os.path.dirname(os.path.realpath(__file__))
ENVVAR_REAL_COMPILER = "CC_WRAPPER_REAL_COMPILER"
ENVVAR_NO_EMIT_IR = "CC_WRAPPER_NO_EMIT_LLVM_IR"

DEFAULT_REAL_COMPILER = 'gcc'
ARGS_SEPARATOR = '--'

# --key=value, -key=value, +key=value ...
_WRAPPER_ARG_REGEX = re.compile(r'^[^0-9A-Za-z]*([^=]*)=(.*)$', re.DOTALL)


def quoteCommand(command: list):
    newList = [shlex.quote(s) for s in command]
    return " ".join(newList)


def splitList(value: str):
    # "a,,b" -> ['a', 'b'], "" -> []
    return [item for item in value.split(',') if item]


def parseWrapperArgs(argv: list):
    """
    Split the wrapper command line into the wrapper's own options and the
    arguments meant for the compiler.

    Everything before the first '--' is scanned for key=value options, every
    argument after it is forwarded verbatim.
    """
    ownArgs = dict()
    forwarded = []
    argsSwitch = False
    for arg in argv:
        if argsSwitch:
            forwarded.append(arg)
            continue
        if arg == ARGS_SEPARATOR:
            argsSwitch = True
            continue
        m = _WRAPPER_ARG_REGEX.match(arg)
        if m:
            ownArgs[m.group(1)] = m.group(2)
    return ownArgs, forwarded


class WrapperConfig(namedtuple('WrapperConfig', ['dbFile', 'clang', 'clangAppend', 'clangDrop', 'debug',
                                                 'llvmLink', 'llvmDis', 'noOptOverride'])):
    __slots__ = ()

    @classmethod
    def fromArgs(cls, ownArgs: dict):
        # unknown keys are ignored, missing ones resolve to empty defaults
        return cls(dbFile=ownArgs.get('dbf', ''),
                   clang=ownArgs.get('clang', ''),
                   clangAppend=splitList(ownArgs.get('cla', '')),
                   clangDrop=splitList(ownArgs.get('cld', '')),
                   debug=ownArgs.get('debug') == '2',
                   llvmLink=ownArgs.get('llink', ''),
                   llvmDis=ownArgs.get('lldis', ''),  # not used yet
                   noOptOverride=ownArgs.get('noo') == '1')


def resolveConfig(argv: list):
    ownArgs, forwarded = parseWrapperArgs(argv)
    return WrapperConfig.fromArgs(ownArgs), forwarded


def realCompilerName():
    return os.getenv(ENVVAR_REAL_COMPILER) or DEFAULT_REAL_COMPILER


def emitIrDisabled():
    return bool(os.getenv(ENVVAR_NO_EMIT_IR))
