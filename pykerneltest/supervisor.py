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
import signal
import subprocess
import sys
import typing

from .config import HarnessConfig
from .errors import EmulatorTimeoutError, SpawnError
from .output_pump import OutputPump
from .processutils import commandline_to_str, keep_terminal_sane, print_command
from .qemu_utils import EmulatorArgs, qemu_install_instructions
from .utils import status_update, warning_message
from .verdict import SUCCESS_EXIT_CODE, Verdict, classify

__all__ = ["run_emulator", "OUTPUT_SEPARATOR"]

OUTPUT_SEPARATOR = "\n____________________________________\n"


def _banner(cmdline: "list[str]") -> bytes:
    return ("\nRunning " + commandline_to_str(cmdline) + "\n\n").encode("utf-8")


def _exit_code(returncode: int) -> "typing.Optional[int]":
    if returncode >= 0:
        return returncode
    # Popen reports termination by signal N as -N: there is no exit code in that case.
    try:
        signame = signal.Signals(-returncode).name
    except ValueError:
        signame = "signal " + str(-returncode)
    warning_message("Emulator was terminated by", signame, "and did not report an exit code")
    return None


def _spawn(cmdline: "list[str]") -> subprocess.Popen:
    try:
        # stdin is inherited so that -serial stdio can still receive input
        return subprocess.Popen(cmdline, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except FileNotFoundError as e:
        raise SpawnError("Could not start emulator `" + commandline_to_str(cmdline) + "`: " + str(e), command=cmdline,
                         fixit_hint=qemu_install_instructions()) from e
    except OSError as e:
        raise SpawnError("Could not start emulator `" + commandline_to_str(cmdline) + "`: " + str(e),
                         command=cmdline) from e


def run_emulator(args: EmulatorArgs, *, config: HarnessConfig, stdout: "typing.Optional[typing.BinaryIO]" = None,
                 stderr: "typing.Optional[typing.BinaryIO]" = None) -> Verdict:
    """
    Run the emulator once and return the verdict derived from its exit code.

    The emulator's stdout and stderr are copied (without terminal escape sequences) to ``stdout``/``stderr``,
    which default to the binary buffers of :data:`sys.stdout` and :data:`sys.stderr`. The verdict is only computed
    once the process has exited and both streams have been drained. Spawn failures and I/O errors while copying the
    output raise :class:`SpawnError` and :class:`StreamIOError` instead of producing a verdict.
    """
    cmdline = args.commandline
    if config.pretend:
        print_command(cmdline, config=config)
        return classify(SUCCESS_EXIT_CODE)
    # Make sure our own status messages are not interleaved with the emulator output
    sys.stdout.flush()
    sys.stderr.flush()
    if stdout is None:
        stdout = sys.stdout.buffer
    if stderr is None:
        stderr = sys.stderr.buffer

    timed_out = False
    with keep_terminal_sane(command=cmdline):
        process = _spawn(cmdline)
        stdout_pump = OutputPump(process.stdout, stdout, name="emulator stdout", prefix=_banner(cmdline),
                                 suffix=OUTPUT_SEPARATOR.encode("utf-8"))
        stderr_pump = OutputPump(process.stderr, stderr, name="emulator stderr")
        stdout_pump.start()
        stderr_pump.start()
        try:
            returncode = process.wait(timeout=config.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            warning_message("Emulator did not exit within", config.timeout, "seconds, killing it")
            process.kill()
            returncode = process.wait()
        except KeyboardInterrupt:
            process.kill()
            process.wait()
            stdout_pump.join()
            stderr_pump.join()
            raise
        # Join both pumps before reporting an error from either of them
        stdout_pump.join()
        stderr_pump.join()
        stdout_pump.join_checked()
        stderr_pump.join_checked()
    if timed_out:
        raise EmulatorTimeoutError(cmdline, config.timeout)
    exit_code = _exit_code(returncode)
    if config.verbose:
        status_update("Emulator exited with code", exit_code)
    return classify(exit_code)
