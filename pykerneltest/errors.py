#
# Copyright (c) 2026 The kerneltest-runner authors
# All rights reserved.
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
# THIS SOFTWARE IS PROVIDED BY THE AUTHOR AND CONTRIBUTORS ``AS IS'' AND
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
#
import typing
from pathlib import Path

__all__ = ["KernelTestError", "ArtifactBuildError", "SpawnError", "StreamIOError", "KernelTestFailed",
           "UnexpectedExitCodeError", "MissingFirmwareError", "EmulatorTimeoutError"]


class KernelTestError(Exception):
    """Base class for all errors that abort a kernel test run."""

    fixit_hint: "typing.Optional[str]" = None


class ArtifactBuildError(KernelTestError):
    def __init__(self, message: str, *, artifact: "typing.Optional[Path]" = None):
        super().__init__(message)
        self.artifact = artifact


class SpawnError(KernelTestError):
    def __init__(self, message: str, *, command: "list[str]", fixit_hint: "typing.Optional[str]" = None):
        super().__init__(message)
        self.command = command
        self.fixit_hint = fixit_hint


class StreamIOError(KernelTestError):
    def __init__(self, message: str, *, stream_name: str):
        super().__init__(message)
        self.stream_name = stream_name


class KernelTestFailed(KernelTestError):
    """The kernel under test reported a failure via the debug-exit device."""

    # Not a test class, despite its name matching *Test*
    __test__ = False

    def __init__(self, message: str = "Test failed"):
        super().__init__(message)


class UnexpectedExitCodeError(KernelTestError):
    def __init__(self, exit_code: "typing.Optional[int]"):
        super().__init__("Test failed with unexpected exit code `" + str(exit_code) + "`")
        self.exit_code = exit_code


class MissingFirmwareError(KernelTestError):
    def __init__(self, message: str, *, fixit_hint: "typing.Optional[str]" = None):
        super().__init__(message)
        self.fixit_hint = fixit_hint


class EmulatorTimeoutError(KernelTestError):
    def __init__(self, command: "list[str]", timeout: float):
        super().__init__("Emulator did not exit within " + str(timeout) + " seconds")
        self.command = command
        self.timeout = timeout
