#
# Copyright (C) 2015  Alex Richardson <alr48@cam.ac.uk>
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
#

import os
from collections import namedtuple

from commandwrapper import ShadowTool
from irdatabase import ArtifactRecord, RecordKind
from linkerwrapper import linkerArguments, isIrFile

OBJECT_SUFFIXES = ('.o', '.lo', '.ko')
SOURCE_SUFFIX = '.c'
IR_SUFFIX = '.ll'
WHOLE_IR_SUFFIX = '.llw'  # whole-program LLVM IR produced by a link step
CONFTEST_NAMES = ('conftest' + IR_SUFFIX, 'conftest' + WHOLE_IR_SUFFIX)
CONFTEST_SOURCE = 'conftest' + SOURCE_SUFFIX


def isObjectFile(fname: str):
    return fname.endswith(OBJECT_SUFFIXES)


def isSourceFile(fname: str):
    return fname.endswith(SOURCE_SUFFIX)


def irName(fname: str):
    # foo.o -> foo.ll, dir/foo.lo -> dir/foo.ll
    root, ext = os.path.splitext(fname)
    return root + IR_SUFFIX


def clangDefaultOptions(defaultOptim=False):
    # clang uses the last optimization level given on the command line, so
    # these must come before any user supplied flags
    options = ['-S', '-emit-llvm', '-g', '-fdebug-macro', '-Wno-format-security']
    if defaultOptim:
        options.extend(['-O1', '-Xclang', '-disable-llvm-passes'])
    return options


ClassificationResult = namedtuple('ClassificationResult', ['tool', 'binary', 'arguments', 'outputFile',
                                                           'linking', 'records', 'skipReason'])


class CompilerArgumentClassifier:
    """
    Turns a gcc command line into the equivalent clang/llvm-link command
    that emits textual LLVM IR instead of objects and binaries.

    A command line without -c is treated as a link step. Objects given to a
    link step are replaced by the corresponding .ll files and linked with
    llvm-link; if the same step also compiles C sources the command stays a
    clang command and the .ll inputs are dropped.
    """

    def __init__(self, config, cwd=None, exists=os.path.exists):
        self.config = config
        self.cwd = cwd
        self.exists = exists

    def classify(self, forwardedArgs):
        args = list(forwardedArgs)
        cwd = self.cwd or os.getcwd()
        linking = '-c' not in args
        containsSource = False
        linkingWithSources = False
        outputFile = ''
        tool = ShadowTool.compiler
        irArgs = []

        for index, arg in enumerate(args):
            if arg in self.config.clangDrop:
                continue
            objectFile = isObjectFile(arg)
            sourceFile = isSourceFile(arg)
            containsSource = containsSource or sourceFile
            if index > 0 and args[index - 1] == '-o':
                if objectFile and not linking:
                    # compiling to an object file: emit foo.ll instead of foo.o
                    arg = irName(arg)
                elif not objectFile and linking:
                    arg = arg + WHOLE_IR_SUFFIX
                outputFile = arg
            elif objectFile and linking:
                # input of the link step
                arg = irName(arg)
                tool = ShadowTool.linker
            elif sourceFile and linking:
                linkingWithSources = True
            irArgs.append(arg)

        if linkingWithSources and tool == ShadowTool.linker:
            # compiling and linking in one step, llvm-link cannot handle the sources
            tool = ShadowTool.compiler
            irArgs = [arg for arg in irArgs if not arg.endswith(IR_SUFFIX)]

        skipReason = self._skipReason(args, outputFile, linking, containsSource)
        if skipReason:
            return ClassificationResult(tool, self._binary(tool), [], outputFile, linking, [], skipReason)

        records = self._records(irArgs, outputFile, linking, tool, cwd)
        if tool == ShadowTool.compiler:
            irArgs.extend(clangDefaultOptions(not self.config.noOptOverride))
            irArgs.extend(self.config.clangAppend)
        else:
            irArgs = linkerArguments(irArgs, self.exists)
        return ClassificationResult(tool, self._binary(tool), irArgs, outputFile, linking, records, None)

    def _binary(self, tool):
        return self.config.clang if tool == ShadowTool.compiler else self.config.llvmLink

    @staticmethod
    def _skipReason(args, outputFile, linking, containsSource):
        if outputFile and not isIrFile(outputFile):
            return 'output ' + outputFile + ' is neither an object file nor a linked file'
        if outputFile in CONFTEST_NAMES or CONFTEST_SOURCE in args:
            return 'configure test'
        if not linking and not containsSource:
            return 'no C source file to compile'
        return None

    @staticmethod
    def _records(irArgs, outputFile, linking, tool, cwd):
        if outputFile:
            kind = RecordKind.object_output if tool == ShadowTool.compiler else RecordKind.ir_file
            return [ArtifactRecord(kind, os.path.join(cwd, outputFile))]
        if not linking:
            # no -o: mirror the compiler's default naming for every non-source argument
            return [ArtifactRecord(RecordKind.object_output, os.path.join(cwd, irName(arg)))
                    for arg in irArgs if not isSourceFile(arg)]
        return []


def classify(config, forwardedArgs, cwd=None, exists=os.path.exists):
    return CompilerArgumentClassifier(config, cwd, exists).classify(forwardedArgs)
