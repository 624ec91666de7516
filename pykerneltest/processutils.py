#
# Copyright (c) 2016 Alex Richardson
# Copyright (c) 2026 The kerneltest-runner authors
# All rights reserved.
#
# This software was developed by SRI International and the University of
# Cambridge Computer Laboratory under DARPA/AFRL contract FA8750-10-C-0237
# ("CTSRD"), as part of the DARPA CRASH research programme.
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
import contextlib
import fcntl
import os
import shlex
import signal
import subprocess
import sys
import termios
import typing

from .colour import AnsiColour, coloured
from .errors import KernelTestError, KernelTestFailed
from .utils import ConfigBase, error_message, fatal_error, warning_message

__all__ = ["print_command", "run_command", "commandline_to_str", "keep_terminal_sane",
           "run_and_kill_children_on_exit", "TEST_FAILURE_EXIT_CODE"]

# Exit code of the command line tool if the kernel itself reported a failure
TEST_FAILURE_EXIT_CODE = 2


class TtyState:
    """Terminal attributes and file status flags of one of the standard streams"""

    def __init__(self, stream: "typing.Optional[typing.TextIO]", context: str) -> None:
        self.context = context
        self.name = str(getattr(stream, "name", stream))
        self.attrs = None
        self.flags = None
        try:
            self.fd: "typing.Optional[int]" = stream.fileno()
        except (AttributeError, ValueError, OSError):
            # No file descriptor, e.g. when pytest replaced the standard streams
            self.fd = None
            return
        try:
            self.attrs = termios.tcgetattr(self.fd)
        except termios.error as e:
            if self._in_foreground():
                warning_message("Failed to query TTY state for", self.name, "-", e)
        try:
            self.flags = fcntl.fcntl(self.fd, fcntl.F_GETFL)
        except OSError as e:
            warning_message("Failed to query file status flags for", self.name, "-", e)

    def _in_foreground(self) -> bool:
        try:
            return os.isatty(self.fd) and os.tcgetpgrp(self.fd) == os.getpgrp()
        except OSError:
            return False

    def restore(self) -> None:
        if self.fd is None:
            return
        if self.flags is not None:
            try:
                flags = fcntl.fcntl(self.fd, fcntl.F_GETFL)
                if flags != self.flags:
                    # QEMU's -serial stdio sets O_NONBLOCK on the shared file description
                    warning_message(self.context, "changed the file status flags of", self.name, "from",
                                    hex(self.flags), "to", hex(flags), "- resetting them")
                    fcntl.fcntl(self.fd, fcntl.F_SETFL, self.flags)
            except OSError as e:
                warning_message(self.context, "failed to restore file status flags for", self.name, "-", e)
        # Only touch the terminal while we own it, tcdrain() can block forever otherwise
        if self.attrs is None or not self._in_foreground():
            return
        try:
            termios.tcdrain(self.fd)
            if termios.tcgetattr(self.fd) != self.attrs:
                warning_message(self.context, "changed the TTY attributes of", self.name, "- resetting them")
                termios.tcsetattr(self.fd, termios.TCSADRAIN, self.attrs)
        except termios.error as e:
            warning_message(self.context, "failed to restore TTY attributes for", self.name, "-", e)


@contextlib.contextmanager
def suppress_sigttou():
    handler = signal.signal(signal.SIGTTOU, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGTTOU, handler)


@contextlib.contextmanager
def keep_terminal_sane(command: "typing.Optional[typing.Sequence[str]]" = None):
    """Restore the state of stdin/stdout/stderr if a child process (usually QEMU) left it modified."""
    context = "'" + commandline_to_str(command) + "'" if command else "A child process"
    states = [TtyState(stream, context) for stream in (sys.__stdin__, sys.__stdout__, sys.__stderr__)]
    try:
        yield
    finally:
        for state in states:
            state.restore()


def commandline_to_str(args: "typing.Iterable[typing.Any]") -> str:
    return " ".join(shlex.quote(str(s)) for s in args)


def print_command(cmdline: "typing.Sequence[typing.Any]", *, config: ConfigBase, print_verbose_only=False,
                  colour=AnsiColour.yellow, **kwargs) -> None:
    if config.quiet or (print_verbose_only and not config.verbose):
        return
    print(coloured(colour, commandline_to_str(cmdline)), flush=True, **kwargs)


def run_command(cmdline: "typing.Sequence[typing.Any]", *, config: ConfigBase, print_verbose_only=False,
                capture_error=False, **kwargs) -> "subprocess.CompletedProcess[bytes]":
    """
    Run a command to completion, printing it first.

    Nothing is executed in pretend mode. A non-zero exit status raises :class:`subprocess.CalledProcessError`
    (with the standard error output attached if ``capture_error`` is set).
    """
    assert "_ARGCOMPLETE" not in os.environ, "Should not execute any programs as part of bash completion!"
    cmdline = [str(arg) for arg in cmdline]
    print_command(cmdline, config=config, print_verbose_only=print_verbose_only)
    if config.pretend:
        return subprocess.CompletedProcess(cmdline, 0, b"", b"")
    if capture_error:
        kwargs["stderr"] = subprocess.PIPE
    if config.quiet:
        kwargs.setdefault("stdout", subprocess.DEVNULL)
    with subprocess.Popen(cmdline, **kwargs) as process:
        try:
            stdout, stderr = process.communicate()
        except KeyboardInterrupt:
            process.send_signal(signal.SIGINT)
            raise
    if process.returncode != 0:
        raise subprocess.CalledProcessError(process.returncode, cmdline, output=stdout, stderr=stderr)
    return subprocess.CompletedProcess(cmdline, process.returncode, stdout, stderr)


def _become_process_group_leader() -> None:
    old_pgrp = os.getpgrp()
    if old_pgrp == os.getpid():
        return
    os.setpgrp()
    # If the old group was in the foreground, move the new one there so that QEMU can still use the terminal
    with suppress_sigttou():
        try:
            tty = os.open("/dev/tty", os.O_RDWR)
        except OSError:
            return
        try:
            if os.tcgetpgrp(tty) == old_pgrp:
                os.tcsetpgrp(tty, os.getpgrp())
        finally:
            os.close(tty)


def run_and_kill_children_on_exit(fn: "typing.Callable[[], typing.Any]") -> None:
    """
    Run ``fn`` in a new process group and turn the errors it raises into an exit status.

    On error every process in the group (QEMU, the image builder) is sent SIGTERM.
    """
    error = False
    try:
        _become_process_group_leader()
        fn()
    except KeyboardInterrupt:
        error = True
        sys.exit("Exiting due to Ctrl+C")
    except KernelTestFailed as err:
        error = True
        error_message(err, error_context=getattr(err, "error_context", None))
        sys.exit(TEST_FAILURE_EXIT_CODE)
    except KernelTestError as err:
        error = True
        # Let an attached debugger break on the exception
        if sys.gettrace() is not None:
            raise
        fatal_error(err, fixit_hint=err.fixit_hint, error_context=getattr(err, "error_context", None))
    except subprocess.CalledProcessError as err:
        error = True
        fatal_error("Command `" + commandline_to_str(err.cmd) + "` failed with non-zero exit code", err.returncode)
    finally:
        if error:
            signal.signal(signal.SIGTERM, signal.SIG_IGN)
            os.killpg(0, signal.SIGTERM)
