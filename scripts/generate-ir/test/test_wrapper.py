#!/usr/bin/env python3

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

import unittest
import io
import os
import sys
import subprocess
import tempfile
from contextlib import redirect_stdout, redirect_stderr
from unittest import mock
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import ccwrapper
from ccwrapper import CcWrapper
from commandwrapper import ProcessRunner, CommandWrapperError, ShadowTool, findExe
from irdatabase import ArtifactRecord, RecordKind
from wrapperconfig import resolveConfig, ENVVAR_NO_EMIT_IR, ENVVAR_REAL_COMPILER


class FakeRunner:
    """Records every command instead of running it."""

    def __init__(self, results=(), createOutput=True):
        self.results = list(results)
        self.createOutput = createOutput
        self.commands = []

    def run(self, program, args):
        self.commands.append([os.path.basename(program)] + list(args))
        if self.createOutput and '-o' in args:
            open(args[args.index('-o') + 1], 'w').close()
        return self.results.pop(0) if self.results else True


class MemoryDatabase:
    def __init__(self):
        self.records = []

    def record(self, records):
        written = [r for r in records if os.path.exists(r.path)]
        self.records.extend(written)
        return len(written)


def getWrapper(realCmd, runner, database=None, options=('--clang=clang', '--llink=llvm-link')):
    if type(realCmd) == str:
        realCmd = realCmd.split()
    config, forwarded = resolveConfig(list(options) + ['--'] + realCmd)
    return CcWrapper(forwarded, config, runner=runner, database=database or MemoryDatabase())


class TestCcWrapper(unittest.TestCase):

    def setUp(self):
        self.oldcwd = os.getcwd()
        self.tempdir = tempfile.TemporaryDirectory()
        os.chdir(self.tempdir.name)
        self.cwd = os.getcwd()
        self.env = mock.patch.dict(os.environ, {ENVVAR_REAL_COMPILER: 'gcc'})
        self.env.start()
        os.environ.pop(ENVVAR_NO_EMIT_IR, None)

    def tearDown(self):
        self.env.stop()
        os.chdir(self.oldcwd)
        self.tempdir.cleanup()

    def testCompile(self):
        runner = FakeRunner()
        database = MemoryDatabase()
        wrapper = getWrapper('-c foo.c -o foo.o', runner, database)
        self.assertEqual(wrapper.run(), 0)
        self.assertEqual(len(runner.commands), 2)
        self.assertEqual(runner.commands[0], ['gcc', '-c', 'foo.c', '-o', 'foo.o'])
        self.assertEqual(runner.commands[1][:5], ['clang', '-c', 'foo.c', '-o', 'foo.ll'])
        self.assertEqual(wrapper.tool, ShadowTool.compiler)
        self.assertEqual(database.records, [ArtifactRecord(RecordKind.object_output,
                                                           os.path.join(self.cwd, 'foo.ll'))])

    def testLink(self):
        open('foo.ll', 'w').close()
        runner = FakeRunner()
        database = MemoryDatabase()
        self.assertEqual(getWrapper('foo.o bar.o -o app', runner, database).run(), 0)
        self.assertEqual(runner.commands[1], ['llvm-link', '-S', 'foo.ll', '-o', 'app.llw'])
        self.assertEqual(database.records, [ArtifactRecord(RecordKind.ir_file, os.path.join(self.cwd, 'app.llw'))])

    def testRealCompilerFails(self):
        runner = FakeRunner(results=[False])
        database = MemoryDatabase()
        self.assertEqual(getWrapper('-c foo.c -o foo.o', runner, database).run(), 1)
        self.assertEqual(len(runner.commands), 1)
        self.assertEqual(database.records, [])

    def testShadowCompilerFails(self):
        runner = FakeRunner(results=[True, False], createOutput=False)
        database = MemoryDatabase()
        self.assertEqual(getWrapper('-c foo.c -o foo.o', runner, database).run(), 0)
        self.assertEqual(len(runner.commands), 2)
        self.assertEqual(database.records, [])

    def testOneWarningPerFailure(self):
        failure = subprocess.CalledProcessError(1, 'cc')
        for results, status in (([failure], 1), ([None, failure], 0)):
            stderr = io.StringIO()
            with mock.patch('commandwrapper.subprocess.check_call', side_effect=results), redirect_stderr(stderr):
                wrapper = getWrapper('-c foo.c -o foo.o', ProcessRunner())
                self.assertEqual(wrapper.run(), status)
            lines = stderr.getvalue().splitlines()
            self.assertEqual(len(lines), 1, lines)
            self.assertTrue(lines[0].startswith('cc_wrapper: warning: exit status 1'))

    def testSkipped(self):
        for cmd in ('-c conftest.c -o conftest.o', '-c foo.c -o foo.exe', '-c foo.S -o foo.o'):
            runner = FakeRunner()
            database = MemoryDatabase()
            wrapper = getWrapper(cmd, runner, database)
            self.assertEqual(wrapper.run(), 0)
            self.assertTrue(wrapper.nothingToDo)
            self.assertEqual(len(runner.commands), 1, cmd)
            self.assertEqual(database.records, [])

    def testInformational(self):
        for cmd in ('--version', '-v --help'):
            runner = FakeRunner()
            self.assertEqual(getWrapper(cmd, runner).run(), 0)
            self.assertEqual(runner.commands, [['gcc'] + cmd.split()])
        self.assertEqual(getWrapper('--version', FakeRunner(results=[False])).run(), 1)

    def testNoEmitIr(self):
        runner = FakeRunner()
        with mock.patch.dict(os.environ, {ENVVAR_NO_EMIT_IR: '1'}):
            self.assertEqual(getWrapper('-c foo.c -o foo.o', runner).run(), 0)
        self.assertEqual(len(runner.commands), 1)

    def testDebugOutput(self):
        runner = FakeRunner()
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            getWrapper('-c foo.c -o foo.o', runner, options=('--clang=clang', '--debug=2')).run()
        self.assertIn('Wrapper calling: clang -c foo.c -o foo.ll -S -emit-llvm', stdout.getvalue())
        # the real command's own stdout (e.g. gcc -E) must not be mixed with our output
        self.assertNotIn('Original:', stdout.getvalue())
        self.assertRegex(stderr.getvalue(), r'Original: \S*gcc -c foo.c -o foo.o')

        stdout = io.StringIO()
        with redirect_stdout(stdout):
            getWrapper('-c foo.c -o foo.o', FakeRunner(), options=('--clang=clang',)).run()
        self.assertEqual(stdout.getvalue(), '')

    def testNonUtf8FileName(self):
        open('foo.c', 'w').close()
        output = os.fsdecode(b'caf\xe9.o')

        def fakeRun(runner, program, args):
            if program == 'clang':
                open(args[args.index('-o') + 1], 'w').close()
            return True

        # a strict UTF-8 stdout like the one of a real process
        stdoutBytes = io.BytesIO()
        stdout = io.TextIOWrapper(stdoutBytes, encoding='utf-8')
        with mock.patch.object(ProcessRunner, 'run', fakeRun), redirect_stdout(stdout), \
                redirect_stderr(io.StringIO()):
            status = ccwrapper.main(['--dbf=db.txt', '--clang=clang', '--debug=2', '--',
                                     '-c', 'foo.c', '-o', output])
        self.assertEqual(status, 0)
        self.assertIn(b'caf\xe9.ll', stdoutBytes.getvalue())
        with open('db.txt', 'rb') as db:
            self.assertEqual(db.read(), b'o:' + os.fsencode(os.path.join(self.cwd, 'caf')) + b'\xe9.ll\n')

    def testMain(self):
        open('foo.c', 'w').close()
        commands = []

        def fakeRun(runner, program, args):
            commands.append([program] + list(args))
            if program == 'clang':
                open(args[args.index('-o') + 1], 'w').close()
            return True

        with mock.patch.object(ProcessRunner, 'run', fakeRun):
            status = ccwrapper.main(['--dbf=db.txt', '--clang=clang', '--llink=llvm-link', '--cla=-O0', '--',
                                     '-c', 'foo.c', '-o', 'foo.o'])
        self.assertEqual(status, 0)
        self.assertEqual(commands[1][-1], '-O0')
        with open('db.txt') as db:
            self.assertEqual(db.read(), 'o:' + os.path.join(self.cwd, 'foo.ll') + '\n')


class TestProcessRunner(unittest.TestCase):

    def testSuccess(self):
        self.assertTrue(ProcessRunner().run(sys.executable, ['-c', 'pass']))

    def testFailures(self):
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            self.assertFalse(ProcessRunner().run(sys.executable, ['-c', 'import sys; sys.exit(3)']))
            self.assertFalse(ProcessRunner().run(sys.executable,
                                                 ['-c', 'import os, signal; os.kill(os.getpid(), signal.SIGKILL)']))
            self.assertFalse(ProcessRunner().run('/nonexistent/compiler', []))
            self.assertFalse(ProcessRunner().run('', ['-c', 'foo.c']))
        self.assertEqual(stderr.getvalue().count('cc_wrapper: warning:'), 4)

    def testCheckCall(self):
        with self.assertRaises(CommandWrapperError):
            ProcessRunner().checkCall(sys.executable, ['-c', 'import sys; sys.exit(1)'])

    def testFindExe(self):
        self.assertIsNone(findExe('/nonexistent/compiler'))
        self.assertEqual(findExe(sys.executable), sys.executable)


if __name__ == '__main__':
    unittest.main()
