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
import sys
import typing
from pathlib import Path

from .colour import AnsiColour, coloured

__all__ = ["status_update", "verbose_status_update", "warning_message", "error_message", "fatal_error",
           "fixit_message", "add_error_context", "coloured", "AnsiColour", "ConfigBase", "OSInfo"]

if sys.version_info < (3, 8, 0):
    sys.exit("This script requires at least Python 3.8.0")


class ConfigBase:
    def __init__(self, *, pretend: bool, verbose: bool, quiet: bool) -> None:
        self.pretend = pretend
        self.verbose = verbose
        self.quiet = quiet
        assert not (self.verbose and self.quiet), "mutually exclusive"


def _with_label(label: str, args: tuple, sep: str) -> tuple:
    # With sep="" the caller handles spacing between its own arguments, but not after the label
    return (label, " ") + args if sep == "" else (label,) + args


def status_update(*args, sep=" ", **kwargs) -> None:
    print(coloured(AnsiColour.cyan, *args, sep=sep), **kwargs)


def verbose_status_update(config: ConfigBase, *args, sep=" ", **kwargs) -> None:
    if config.verbose:
        status_update(*args, sep=sep, **kwargs)


def fixit_message(*args, sep=" ") -> None:
    print(coloured(AnsiColour.blue, _with_label("Possible solution:", args, sep), sep=sep), file=sys.stderr,
          flush=True)


def warning_message(*args, sep=" ", fixit_hint=None) -> None:
    print(coloured(AnsiColour.magenta, _with_label("Warning:", args, sep), sep=sep), file=sys.stderr, flush=True)
    if fixit_hint:
        fixit_message(fixit_hint)


_ERROR_CONTEXT: "list[str]" = []


@contextlib.contextmanager
def add_error_context(context: str):
    """Describe what was going on when an error is reported (e.g. "while running uefi test")"""
    _ERROR_CONTEXT.append(context)
    try:
        yield
    except Exception as e:
        # The innermost context wins, main() prints it together with the error
        if getattr(e, "error_context", None) is None:
            e.error_context = context
        raise
    finally:
        _ERROR_CONTEXT.pop()


def _error_line(kind: str, args: tuple, sep: str, context: "typing.Optional[str]") -> str:
    if context is None and _ERROR_CONTEXT:
        context = _ERROR_CONTEXT[-1]
    label = kind + ":"
    if context:
        # the context may contain escape sequences, switch back to red before the message
        label = kind + " " + context + AnsiColour.red.escape_sequence() + ":"
    return coloured(AnsiColour.red, _with_label(label, args, sep), sep=sep)


def error_message(*args, sep=" ", fixit_hint=None, error_context: "typing.Optional[str]" = None) -> None:
    print(_error_line("Error", args, sep, error_context), file=sys.stderr, flush=True)
    if fixit_hint:
        fixit_message(fixit_hint)


def fatal_error(*args, sep=" ", fixit_hint=None, exit_code=3, error_context: "typing.Optional[str]" = None) -> None:
    print(_error_line("Fatal error", args, sep, error_context), file=sys.stderr, flush=True)
    if fixit_hint:
        fixit_message(fixit_hint)
    sys.exit(exit_code)


class OSInfo(object):
    IS_LINUX: bool = sys.platform.startswith("linux")
    IS_FREEBSD: bool = sys.platform.startswith("freebsd")
    IS_MAC: bool = sys.platform.startswith("darwin")
    _os_release: "typing.Optional[dict[str, str]]" = None

    @classmethod
    def os_release(cls) -> "dict[str, str]":
        if cls._os_release is None:
            cls._os_release = {}
            path = Path("/etc/os-release")
            if cls.IS_LINUX and path.exists():
                with path.open(encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if line and not line.startswith("#") and "=" in line:
                            key, value = line.split("=", maxsplit=1)
                            cls._os_release[key] = value.strip('"')
        return cls._os_release

    @classmethod
    def linux_distribution_is(cls, *names: str) -> bool:
        ids = (cls.os_release().get("ID", "") + " " + cls.os_release().get("ID_LIKE", "")).split()
        return any(name in ids for name in names)

    @classmethod
    def package_manager(cls) -> "typing.Optional[str]":
        if cls.IS_MAC:
            return "brew"
        if cls.IS_FREEBSD:
            return "pkg"
        if cls.linux_distribution_is("debian", "ubuntu"):
            return "apt"
        if cls.linux_distribution_is("suse", "opensuse"):
            return "zypper"
        if cls.linux_distribution_is("fedora", "rhel"):
            return "dnf"
        return None

    @classmethod
    def install_instructions(cls, name: str, *, alternative: "typing.Optional[str]" = None,
                             **packages: str) -> str:
        """
        Return a fix-it hint that tells the user how to install ``name``.

        ``packages`` maps a package manager (``apt``, ``dnf``, ``zypper``, ``brew``, ``pkg``) to the package name
        that provides ``name`` there.
        """
        manager = cls.package_manager()
        if manager in packages:
            result = "Run `" + manager + " install " + packages[manager] + "`"
        else:
            result = ("Possibly running `" + (manager or "<system package manager>") + " install " + name +
                      "` fixes this. Note: package name may not be correct.")
        if alternative:
            result += "\nAlternatively " + alternative
        return result
