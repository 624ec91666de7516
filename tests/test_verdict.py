import pytest

from pykerneltest.errors import KernelTestFailed, UnexpectedExitCodeError
from pykerneltest.verdict import (
    FAILURE_EXIT_CODE,
    FAILURE_STATUS,
    SUCCESS_EXIT_CODE,
    SUCCESS_STATUS,
    Verdict,
    VerdictKind,
    classify,
    debug_exit_code,
)


def test_debug_exit_encoding():
    assert debug_exit_code(SUCCESS_STATUS) == SUCCESS_EXIT_CODE == 33
    assert debug_exit_code(FAILURE_STATUS) == FAILURE_EXIT_CODE == 35


def test_recognized_exit_codes():
    assert classify(33) == Verdict.PASSED
    assert classify(33).passed
    assert classify(35) == Verdict.FAILED
    assert classify(35).kind is VerdictKind.FAILED
    assert not classify(35).passed


@pytest.mark.parametrize("exit_code", [None, 0, 1, 3, 32, 34, 36, 255, -1])
def test_unexpected_exit_codes(exit_code):
    verdict = classify(exit_code)
    assert verdict.kind is VerdictKind.UNEXPECTED_EXIT_CODE
    assert verdict.exit_code == exit_code
    assert verdict == Verdict.unexpected_exit_code(exit_code)
    assert not verdict.passed


def test_check_passed():
    assert Verdict.PASSED.check() is None


def test_check_failed_is_fatal():
    with pytest.raises(KernelTestFailed, match="^Test failed$"):
        Verdict.FAILED.check()


def test_check_unexpected_exit_code():
    with pytest.raises(UnexpectedExitCodeError, match="unexpected exit code `1`") as excinfo:
        classify(1).check()
    assert excinfo.value.exit_code == 1
    with pytest.raises(UnexpectedExitCodeError, match="unexpected exit code `None`") as excinfo:
        classify(None).check()
    assert excinfo.value.exit_code is None


def test_failed_is_not_an_unexpected_exit_code():
    # A recognized failure must be distinguishable from a harness/environment problem
    with pytest.raises(KernelTestFailed) as excinfo:
        classify(35).check()
    assert not isinstance(excinfo.value, UnexpectedExitCodeError)


def test_repr():
    assert repr(Verdict.PASSED) == "Verdict.PASSED"
    assert repr(classify(7)) == "Verdict.unexpected_exit_code(7)"
    assert len({classify(33), Verdict.PASSED, classify(None), classify(None)}) == 2
