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

IR_SUFFIXES = ('.ll', '.llw')


def isIrFile(fname: str):
    return fname.endswith(IR_SUFFIXES)


def linkerArguments(irArgs, exists=os.path.exists):
    """
    Reduce a rewritten link command line to what llvm-link understands:
    the .ll/.llw inputs and the -o flag with its value.

    Inputs that do not exist are dropped, they might e.g. have been built
    from assembly and so never had an IR counterpart.
    """
    linkArgs = [arg for arg in irArgs if isIrFile(arg) or arg == '-o']
    newArgs = ['-S']  # emit textual IR
    outputFlag = False
    for arg in linkArgs:
        if outputFlag or arg == '-o' or exists(arg):
            newArgs.append(arg)
        outputFlag = arg == '-o'
    return newArgs
