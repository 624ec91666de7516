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
import os
import shutil
import typing
from pathlib import Path

from .boot_targets import BiosBootTarget, BootTarget, UefiBootTarget, UefiPxeBootTarget
from .config import HarnessConfig
from .errors import MissingFirmwareError
from .utils import OSInfo, warning_message

__all__ = ["QEMU_BASELINE_ARGS", "QEMU_BINARY_NAME", "EmulatorArgs", "build_emulator_args",
           "find_ovmf_firmware", "get_qemu_binary", "qemu_install_instructions"]

QEMU_BINARY_NAME = "qemu-system-x86_64"

# Appended to every command line after the target-specific arguments.
# The isa-debug-exit device turns a write of `status` to port 0xf4 into the QEMU exit code (status << 1) | 1.
QEMU_BASELINE_ARGS: "tuple[str, ...]" = (
    "-device", "isa-debug-exit,iobase=0xf4,iosize=0x04",
    "-serial", "stdio",
    "-display", "none",
    "--no-reboot",
)

PXE_NETWORK = "192.168.17.0/24"
PXE_BOOT_FILE = "bootloader"
PXE_NETWORK_DEVICE = "virtio-net-pci"

OVMF_CANDIDATES = [
    "/usr/share/ovmf/OVMF.fd",
    "/usr/share/OVMF/OVMF.fd",
    "/usr/share/qemu/OVMF.fd",
    "/usr/share/edk2/ovmf/OVMF.fd",
    "/usr/share/edk2-ovmf/x64/OVMF.fd",
    "/usr/share/edk2/x64/OVMF.fd",
    "/usr/share/qemu/ovmf-x86_64.bin",
    "/usr/local/share/qemu/edk2-x86_64-code.fd",
    "/opt/homebrew/share/qemu/edk2-x86_64-code.fd",
]


class EmulatorArgs(object):
    """The complete, immutable command line for one emulator run."""

    def __init__(self, qemu_command: "typing.Union[str, Path]", args: "typing.Iterable[str]") -> None:
        self._qemu_command = str(qemu_command)
        self._args = tuple(str(a) for a in args)

    @property
    def qemu_command(self) -> str:
        return self._qemu_command

    @property
    def args(self) -> "tuple[str, ...]":
        return self._args

    @property
    def commandline(self) -> "list[str]":
        return [self._qemu_command, *self._args]

    def __eq__(self, other) -> bool:
        if not isinstance(other, EmulatorArgs):
            return NotImplemented
        return self.commandline == other.commandline

    def __repr__(self) -> str:
        return "EmulatorArgs(" + repr(self.commandline) + ")"


def qemu_install_instructions() -> str:
    return OSInfo.install_instructions("qemu", apt="qemu-system-x86", zypper="qemu-x86", dnf="qemu-system-x86",
                                      brew="qemu", pkg="qemu")


def get_qemu_binary(config: HarnessConfig) -> "typing.Union[str, Path]":
    if config.qemu_command is not None:
        return config.qemu_command
    found_in_path = shutil.which(QEMU_BINARY_NAME)
    # If QEMU is missing the spawn will fail with a useful error message
    return Path(found_in_path) if found_in_path is not None else QEMU_BINARY_NAME


def find_ovmf_firmware(config: HarnessConfig) -> Path:
    if config.ovmf_path is not None:
        if not config.ovmf_path.is_file() and not config.pretend:
            raise MissingFirmwareError("Configured OVMF firmware " + str(config.ovmf_path) + " does not exist")
        return config.ovmf_path
    env_path = os.getenv("OVMF_PATH")
    candidates = [env_path] if env_path else []
    candidates.extend(OVMF_CANDIDATES)
    for candidate in candidates:
        if Path(candidate).is_file():
            return Path(candidate)
    hint = OSInfo.install_instructions("ovmf", apt="ovmf", zypper="qemu-ovmf-x86_64", dnf="edk2-ovmf", brew="qemu",
                                       alternative="pass --ovmf=/path/to/OVMF.fd")
    if config.pretend:
        warning_message("Could not find OVMF firmware, using a placeholder path", fixit_hint=hint)
        return Path("/could/not/find/OVMF.fd")
    raise MissingFirmwareError("Could not find OVMF firmware for UEFI boot", fixit_hint=hint)


def _drive_args(image: Path) -> "list[str]":
    return ["-drive", "format=raw,file=" + str(image)]


def build_emulator_args(target: BootTarget, *, config: HarnessConfig) -> EmulatorArgs:
    if isinstance(target, BiosBootTarget):
        target_args = _drive_args(target.artifact_path)
    elif isinstance(target, UefiBootTarget):
        target_args = ["-bios", str(find_ovmf_firmware(config)), *_drive_args(target.artifact_path)]
    elif isinstance(target, UefiPxeBootTarget):
        netdev = ("user,id=net0,net=" + PXE_NETWORK + ",tftp=" + str(target.artifact_path) +
                  ",bootfile=" + PXE_BOOT_FILE + ",id=net0")
        target_args = ["-netdev", netdev,
                       "-device", PXE_NETWORK_DEVICE + ",netdev=net0",
                       "-bios", str(find_ovmf_firmware(config))]
    else:
        raise ValueError("Unknown boot target " + repr(target))
    return EmulatorArgs(get_qemu_binary(config), [*target_args, *QEMU_BASELINE_ARGS])
