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

import sys

from commandwrapper import CommandWrapper, infoMsg
from compilerwrapper import classify
from irdatabase import IrDatabase
from wrapperconfig import resolveConfig

# Usage (e.g. as CC for make):
#   cc-wrapper --dbf=/tmp/db.txt --clang=clang --llink=llvm-link -- <gcc arguments>


class CcWrapper(CommandWrapper):
    def __init__(self, forwardedArgs, config, runner=None, database=None):
        if database is None:
            database = IrDatabase(config.dbFile)
        super().__init__(forwardedArgs, config, runner, database)
        self.result = None

    def computeWrapperCommand(self):
        self.result = classify(self.config, self.forwardedArgs)
        self.tool = self.result.tool
        if self.result.skipReason:
            if self.config.debug:
                print(infoMsg('Not generating LLVM IR: ' + self.result.skipReason))
            self.nothingToDo = True
            return
        self.generateIrCommand = [self.result.binary] + self.result.arguments
        self.records = self.result.records


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    config, forwarded = resolveConfig(argv)
    return CcWrapper(forwarded, config).run()


if __name__ == '__main__':
    sys.exit(main())
