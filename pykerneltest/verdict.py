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
"""
Interpretation of the emulator exit status.

The kernel under test writes a one-byte status to the isa-debug-exit device
which makes QEMU exit with ``(status << 1) | 1``. Only two status values are
meaningful: :data:`SUCCESS_STATUS` and :data:`FAILURE_STATUS`.
"""
import typing
from enum import Enum

from .errors import KernelTestFailed, UnexpectedExitCodeError

__all__ = ["SUCCESS_STATUS", "FAILURE_STATUS", "SUCCESS_EXIT_CODE", "FAILURE_EXIT_CODE", "debug_exit_code",
           "Verdict", "VerdictKind", "classify"]

SUCCESS_STATUS = 0x10
FAILURE_STATUS = 0x11


def debug_exit_code(status: int) -> int:
    return (status << 1) | 1


SUCCESS_EXIT_CODE = debug_exit_code(SUCCESS_STATUS)  # 33
FAILURE_EXIT_CODE = debug_exit_code(FAILURE_STATUS)  # 35


class VerdictKind(Enum):
    PASSED = "passed"
    FAILED = "failed"
    UNEXPECTED_EXIT_CODE = "unexpected exit code"


class Verdict:
    # Set below once the class has been defined
    PASSED: "Verdict"
    FAILED: "Verdict"

    __slots__ = ("_kind", "_exit_code")

    def __init__(self, kind: VerdictKind, exit_code: "typing.Optional[int]") -> None:
        self._kind = kind
        self._exit_code = exit_code

    @classmethod
    def unexpected_exit_code(cls, exit_code: "typing.Optional[int]") -> "Verdict":
        return cls(VerdictKind.UNEXPECTED_EXIT_CODE, exit_code)

    @property
    def kind(self) -> VerdictKind:
        return self._kind

    @property
    def exit_code(self) -> "typing.Optional[int]":
        return self._exit_code

    @property
    def passed(self) -> bool:
        return self._kind is VerdictKind.PASSED

    def check(self) -> None:
        """Raise the matching exception unless the kernel reported success.

        A recognized failure (exit code 35) is still fatal for the caller: a failing kernel test must stop the
        run rather than be reported as a success.
        """
        if self._kind is VerdictKind.PASSED:
            return
        if self._kind is VerdictKind.FAILED:
            raise KernelTestFailed()
        raise UnexpectedExitCodeError(self._exit_code)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Verdict):
            return NotImplemented
        return self._kind == other._kind and self._exit_code == other._exit_code

    def __hash__(self) -> int:
        return hash((self._kind, self._exit_code))

    def __repr__(self) -> str:
        if self._kind is VerdictKind.UNEXPECTED_EXIT_CODE:
            return "Verdict.unexpected_exit_code(" + repr(self._exit_code) + ")"
        return "Verdict." + self._kind.name


Verdict.PASSED = Verdict(VerdictKind.PASSED, SUCCESS_EXIT_CODE)
Verdict.FAILED = Verdict(VerdictKind.FAILED, FAILURE_EXIT_CODE)


def classify(exit_code: "typing.Optional[int]") -> Verdict:
    if exit_code == SUCCESS_EXIT_CODE:
        return Verdict.PASSED
    if exit_code == FAILURE_EXIT_CODE:
        return Verdict.FAILED
    return Verdict.unexpected_exit_code(exit_code)
