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
import sys
import subprocess
from enum import Enum

import termcolor

from wrapperconfig import IR_WRAPPER_DIR, quoteCommand, emitIrDisabled, realCompilerName

WARNING_PREFIX = 'cc_wrapper: warning: '


def _isTty(stream):
    try:
        return os.isatty(stream.fileno())
    except (AttributeError, ValueError, OSError):
        # replaced streams (e.g. io.StringIO in tests) have no usable fileno()
        return False


def infoMsg(msg, stream=None):
    if not _isTty(stream or sys.stdout):
        return msg
    return termcolor.colored(msg, 'magenta', 'on_green', attrs=[])


def warningMsg(msg, stream=None):
    if not _isTty(stream or sys.stderr):
        return msg
    return termcolor.colored(msg, 'yellow', attrs=['bold'])


def warn(msg):
    print(warningMsg(WARNING_PREFIX + msg), file=sys.stderr)


def printCommandLine(msg, stream=None):
    # command lines may hold undecodable file names (surrogate escapes), write
    # them back as the original bytes instead of failing on a strict stream
    stream = stream or sys.stdout
    stream.flush()
    buffer = getattr(stream, 'buffer', None)
    if buffer is None:
        print(msg.encode('utf-8', 'backslashreplace').decode('utf-8'), file=stream)
        return
    buffer.write(os.fsencode(msg + '\n'))
    buffer.flush()


class ShadowTool(Enum):
    compiler = 1  # IR-emitting compiler (clang)
    linker = 2  # IR linker (llvm-link)


def highlightForTool(tool, msg, stream=None):
    if not _isTty(stream or sys.stdout):
        return msg
    if tool == ShadowTool.compiler:
        return termcolor.colored(msg, 'blue', attrs=['bold'])
    elif tool == ShadowTool.linker:
        return termcolor.colored(msg, 'green', attrs=['bold'])
    return termcolor.colored(msg, 'white', attrs=['bold'])


# Find executable in $PATH, skipping the directory the wrapper is installed in
# http://stackoverflow.com/questions/377017/test-if-executable-exists-in-python/377028#377028
def findExe(program, skipDir=IR_WRAPPER_DIR):
    def is_exe(fpath):
        return os.path.isfile(fpath) and os.access(fpath, os.X_OK)

    fpath, fname = os.path.split(program)
    if fpath:
        if is_exe(program):
            return program
    else:
        for path in os.environ.get("PATH", "").split(os.pathsep):
            path = path.strip('"')
            if not path:
                continue
            if skipDir and (path.startswith(skipDir) or os.path.realpath(path).startswith(skipDir)):
                continue
            exe_file = os.path.join(path, program)
            if is_exe(exe_file):
                return exe_file

    return None


class CommandWrapperError(RuntimeError):
    def __init__(self, msg, args):
        super().__init__(msg, "Caused by:", quoteCommand(args))


class ProcessRunner:
    """Runs an external program and waits for it to finish."""

    def checkCall(self, program, args):
        command = [program] + list(args)
        try:
            subprocess.check_call(command)
        except subprocess.CalledProcessError as e:
            # negative return codes mean the child was killed by a signal
            raise CommandWrapperError('exit status ' + str(e.returncode), command) from e
        except OSError as e:
            raise CommandWrapperError('could not execute: ' + str(e), command) from e

    def run(self, program, args):
        try:
            self.checkCall(program, args)
        except CommandWrapperError as e:
            warn(' '.join(str(a) for a in e.args))
            return False
        return True


class CommandWrapper:
    """
    Runs the real compiler for a forwarded command line and then the shadow
    command computed by computeWrapperCommand().
    """

    def __init__(self, forwardedArgs, config, runner=None, database=None):
        self.config = config
        self.forwardedArgs = list(forwardedArgs)
        self.realCommand = [findExe(realCompilerName()) or realCompilerName()] + self.forwardedArgs
        self.generateIrCommand = list()
        self.nothingToDo = False
        self.tool = None
        self.records = []
        self.runner = runner or ProcessRunner()
        self.database = database

    def run(self):
        if emitIrDisabled() or '--version' in self.forwardedArgs or '--help' in self.forwardedArgs:
            return 0 if self.runRealCommand() else 1

        if not self.runRealCommand():
            return 1

        # parse the original command line and compute the IR generation one
        self.computeWrapperCommand()
        if self.nothingToDo:
            return 0

        if not self.runGenerateIrCommand():
            # already reported by the runner, the build must go on
            return 0

        self.recordArtifacts()
        return 0

    def runRealCommand(self):
        if self.config.debug:
            # stderr: the real command may write its result to stdout (gcc -E)
            msg = highlightForTool(None, 'Original: ' + quoteCommand(self.realCommand), sys.stderr)
            printCommandLine(msg, sys.stderr)
        return self.runner.run(self.realCommand[0], self.realCommand[1:])

    def runGenerateIrCommand(self):
        if self.config.debug:
            printCommandLine(highlightForTool(self.tool, 'Wrapper calling: ' + quoteCommand(self.generateIrCommand)))
        return self.runner.run(self.generateIrCommand[0], self.generateIrCommand[1:])

    def recordArtifacts(self):
        if self.database is not None:
            self.database.record(self.records)

    def computeWrapperCommand(self):
        raise NotImplementedError
