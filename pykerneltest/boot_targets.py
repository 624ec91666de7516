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
from enum import Enum
from pathlib import Path

from .errors import ArtifactBuildError
from .image_builder import DiskImageBuilder
from .utils import add_error_context, warning_message

__all__ = ["FirmwareMode", "FirmwareModes", "BootTarget", "BiosBootTarget", "UefiBootTarget",
           "UefiPxeBootTarget", "KernelTestInvocation", "resolve_boot_targets"]


class FirmwareMode(Enum):
    BIOS = "bios"
    UEFI = "uefi"
    UEFI_PXE = "uefi-pxe"

    @property
    def artifact_suffix(self) -> str:
        return _ARTIFACT_SUFFIXES[self]


_ARTIFACT_SUFFIXES = {
    FirmwareMode.BIOS: ".mbr",
    FirmwareMode.UEFI: ".gpt",
    FirmwareMode.UEFI_PXE: ".tftp",
}


class FirmwareModes(Enum):
    """The firmware configurations that a kernel can be tested with."""
    BIOS = "bios"
    UEFI = "uefi"
    UEFI_PXE = "uefi-pxe"  # UEFI disk image and UEFI network boot
    ALL = "all"

    @property
    def modes(self) -> "tuple[FirmwareMode, ...]":
        # Same order as the targets are run: UEFI first, then BIOS
        if self is FirmwareModes.BIOS:
            return (FirmwareMode.BIOS,)
        if self is FirmwareModes.UEFI:
            return (FirmwareMode.UEFI,)
        if self is FirmwareModes.UEFI_PXE:
            return FirmwareMode.UEFI, FirmwareMode.UEFI_PXE
        return FirmwareMode.UEFI, FirmwareMode.UEFI_PXE, FirmwareMode.BIOS

    @classmethod
    def from_string(cls, value: str) -> "FirmwareModes":
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError("Invalid firmware configuration '" + value + "', expected one of " +
                             ", ".join(m.value for m in cls)) from None


class BootTarget(object):
    mode: FirmwareMode

    def __init__(self, artifact_path: Path) -> None:
        self._artifact_path = artifact_path

    @property
    def artifact_path(self) -> Path:
        return self._artifact_path

    @property
    def description(self) -> str:
        return self.mode.value + " (" + str(self._artifact_path) + ")"

    def __eq__(self, other) -> bool:
        if not isinstance(other, BootTarget):
            return NotImplemented
        return self.mode == other.mode and self._artifact_path == other._artifact_path

    def __hash__(self) -> int:
        return hash((self.mode, self._artifact_path))

    def __repr__(self) -> str:
        return type(self).__name__ + "(" + repr(self._artifact_path) + ")"


class BiosBootTarget(BootTarget):
    mode = FirmwareMode.BIOS


class UefiBootTarget(BootTarget):
    mode = FirmwareMode.UEFI


class UefiPxeBootTarget(BootTarget):
    """The artifact is the TFTP folder that is served to the UEFI network boot"""
    mode = FirmwareMode.UEFI_PXE


_TARGET_CLASSES: "dict[FirmwareMode, type[BootTarget]]" = {
    FirmwareMode.BIOS: BiosBootTarget,
    FirmwareMode.UEFI: UefiBootTarget,
    FirmwareMode.UEFI_PXE: UefiPxeBootTarget,
}


class KernelTestInvocation(typing.NamedTuple):
    kernel_path: Path
    ramdisk_path: "typing.Optional[Path]" = None
    firmware_modes: FirmwareModes = FirmwareModes.ALL


def artifact_path_for(kernel_path: Path, mode: FirmwareMode) -> Path:
    return kernel_path.with_suffix(mode.artifact_suffix)


def _build_artifact(builder: DiskImageBuilder, mode: FirmwareMode, kernel: Path, ramdisk: "typing.Optional[Path]",
                    output: Path) -> None:
    if mode is FirmwareMode.BIOS:
        builder.create_bios_disk_image(kernel, ramdisk, output)
    elif mode is FirmwareMode.UEFI:
        builder.create_uefi_disk_image(kernel, ramdisk, output)
    elif mode is FirmwareMode.UEFI_PXE:
        builder.create_uefi_pxe_tftp_folder(kernel, ramdisk, output)
    else:
        raise ValueError("Unknown firmware mode " + str(mode))


def _check_input_exists(description: str, path: Path, pretend: bool) -> None:
    if path.is_file():
        return
    if pretend:
        warning_message(description, path, "does not exist")
        return
    raise ArtifactBuildError(description + " " + str(path) + " does not exist", artifact=path)


def resolve_boot_targets(invocation: KernelTestInvocation, builder: DiskImageBuilder, *,
                         pretend: bool = False) -> "list[BootTarget]":
    """
    Create the artifacts for all firmware modes of ``invocation``.

    The artifacts are placed next to the kernel binary (same stem, mode-specific suffix). The first
    :class:`ArtifactBuildError` aborts the resolution, so no emulator is started if any artifact is missing.
    With ``pretend`` set, missing input files are only reported since they may not have been built yet.
    """
    kernel_path = invocation.kernel_path
    ramdisk_path = invocation.ramdisk_path
    _check_input_exists("Kernel binary", kernel_path, pretend)
    if ramdisk_path is not None:
        _check_input_exists("Ramdisk", ramdisk_path, pretend)
    result = []
    for mode in invocation.firmware_modes.modes:
        output = artifact_path_for(kernel_path, mode)
        with add_error_context("while creating " + mode.value + " artifact " + str(output)):
            _build_artifact(builder, mode, kernel_path, ramdisk_path, output)
        result.append(_TARGET_CLASSES[mode](output))
    return result
