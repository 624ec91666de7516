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
import subprocess
import typing
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import ArtifactBuildError
from .processutils import commandline_to_str, run_command
from .utils import ConfigBase

__all__ = ["DiskImageBuilder", "CommandDiskImageBuilder"]


class DiskImageBuilder(ABC):
    """
    Creates the bootable artifacts for a kernel binary.

    Implementations must raise :class:`ArtifactBuildError` if an artifact could not be created.
    """

    @abstractmethod
    def create_bios_disk_image(self, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        ...

    @abstractmethod
    def create_uefi_disk_image(self, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        ...

    @abstractmethod
    def create_uefi_pxe_tftp_folder(self, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        ...


class CommandDiskImageBuilder(DiskImageBuilder):
    """
    Delegates image creation to an external tool that is invoked as::

        <command...> {bios,uefi,uefi-pxe} --kernel KERNEL [--ramdisk RAMDISK] --output OUTPUT
    """

    def __init__(self, command: "typing.Sequence[str]", *, config: ConfigBase) -> None:
        if not command:
            raise ValueError("Empty disk image builder command")
        self.command = list(command)
        self.config = config

    def _run(self, kind: str, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        cmdline = [*self.command, kind, "--kernel", str(kernel)]
        if ramdisk is not None:
            cmdline += ["--ramdisk", str(ramdisk)]
        cmdline += ["--output", str(output)]
        try:
            run_command(cmdline, print_verbose_only=True, capture_error=True, config=self.config)
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else ""
            msg = "`" + commandline_to_str(cmdline) + "` failed with exit code " + str(e.returncode)
            if stderr:
                msg += ": " + stderr
            raise ArtifactBuildError(msg, artifact=output) from e
        except OSError as e:
            raise ArtifactBuildError("Could not run `" + commandline_to_str(cmdline) + "`: " + str(e),
                                     artifact=output) from e
        if not self.config.pretend and not output.exists():
            raise ArtifactBuildError("`" + commandline_to_str(cmdline) + "` did not create " + str(output),
                                     artifact=output)

    def create_bios_disk_image(self, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        self._run("bios", kernel, ramdisk, output)

    def create_uefi_disk_image(self, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        self._run("uefi", kernel, ramdisk, output)

    def create_uefi_pxe_tftp_folder(self, kernel: Path, ramdisk: "typing.Optional[Path]", output: Path) -> None:
        self._run("uefi-pxe", kernel, ramdisk, output)
