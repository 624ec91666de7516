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
import argparse
import json
import os
import shlex
import typing
from pathlib import Path

from .boot_targets import FirmwareModes
from .utils import ConfigBase, warning_message

__all__ = ["HarnessConfig", "default_config_path", "load_json_config"]


def default_config_path() -> Path:
    configdir = os.getenv("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return Path(configdir, "kerneltest-runner.json")


def load_json_config(path: Path) -> "dict[str, typing.Any]":
    """Load a JSON config file. Lines starting with # or // are treated as comments."""
    with path.open("r", encoding="utf-8") as f:
        json_lines = []
        for line in f.readlines():
            stripped = line.strip()
            if not stripped.startswith("#") and not stripped.startswith("//"):
                json_lines.append(line)
    result = json.loads("".join(json_lines))
    if not isinstance(result, dict):
        raise ValueError("Expected a JSON object in " + str(path) + " but got " + type(result).__name__)
    return result


def _optional_path(value) -> "typing.Optional[Path]":
    if value is None or value == "":
        return None
    return Path(os.path.expanduser(str(value)))


def _command_list(value) -> "typing.Optional[list[str]]":
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return shlex.split(value)
    return [str(v) for v in value]


class HarnessConfig(ConfigBase):
    # JSON keys and the command line dest that overrides them
    JSON_KEYS = ("qemu_command", "ovmf_path", "firmware", "image_builder", "timeout", "verbose", "quiet")

    def __init__(self, *, pretend: bool = False, verbose: bool = False, quiet: bool = False,
                 qemu_command: "typing.Optional[Path]" = None, ovmf_path: "typing.Optional[Path]" = None,
                 firmware_modes: FirmwareModes = FirmwareModes.ALL,
                 image_builder_command: "typing.Optional[list[str]]" = None,
                 timeout: "typing.Optional[float]" = None) -> None:
        super().__init__(pretend=pretend, verbose=verbose, quiet=quiet)
        self.qemu_command = qemu_command
        self.ovmf_path = ovmf_path
        self.firmware_modes = firmware_modes
        self.image_builder_command = image_builder_command
        if timeout is not None and timeout <= 0:
            raise ValueError("Timeout must be positive, got " + str(timeout))
        self.timeout = timeout

    @classmethod
    def from_values(cls, args: argparse.Namespace, json_config: "dict[str, typing.Any]") -> "HarnessConfig":
        """Combine the parsed command line with the values from the JSON config (command line wins)."""
        for key in json_config:
            if key not in cls.JSON_KEYS:
                warning_message("Unknown config option '" + key + "' in JSON config file")

        def value(name: str, json_key: str):
            cmdline_value = getattr(args, name, None)
            if cmdline_value is not None:
                return cmdline_value
            return json_config.get(json_key)

        firmware = value("firmware", "firmware")
        timeout = value("timeout", "timeout")
        verbose = bool(value("verbose", "verbose"))
        quiet = bool(value("quiet", "quiet"))
        if getattr(args, "verbose", None) and not getattr(args, "quiet", None):
            quiet = False
        elif getattr(args, "quiet", None) and not getattr(args, "verbose", None):
            verbose = False
        if verbose and quiet:
            raise ValueError("verbose and quiet are mutually exclusive")
        return cls(pretend=bool(getattr(args, "pretend", False)), verbose=verbose, quiet=quiet,
                   qemu_command=_optional_path(value("qemu_cmd", "qemu_command")),
                   ovmf_path=_optional_path(value("ovmf", "ovmf_path")),
                   firmware_modes=FirmwareModes.from_string(firmware) if firmware else FirmwareModes.ALL,
                   image_builder_command=_command_list(value("image_builder", "image_builder")),
                   timeout=float(timeout) if timeout is not None else None)

    def __repr__(self) -> str:
        return "HarnessConfig(" + ", ".join(k + "=" + repr(v) for k, v in sorted(vars(self).items())) + ")"
