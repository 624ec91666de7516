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

from .boot_targets import BootTarget, KernelTestInvocation, resolve_boot_targets
from .config import HarnessConfig
from .image_builder import CommandDiskImageBuilder, DiskImageBuilder
from .qemu_utils import build_emulator_args
from .supervisor import run_emulator
from .utils import AnsiColour, add_error_context, coloured, status_update, verbose_status_update

__all__ = ["run_test_kernel", "run_test_kernel_with_ramdisk", "run_boot_target"]


def _default_builder(config: HarnessConfig) -> DiskImageBuilder:
    if not config.image_builder_command:
        raise ValueError("No disk image builder configured (set image_builder_command or pass a builder)")
    return CommandDiskImageBuilder(config.image_builder_command, config=config)


def run_boot_target(target: BootTarget, *, config: HarnessConfig) -> None:
    """Boot one prepared artifact and raise unless the kernel reported success."""
    args = build_emulator_args(target, config=config)
    verbose_status_update(config, "Booting", target.description)
    with add_error_context("while running " + target.mode.value + " test"):
        verdict = run_emulator(args, config=config)
        verdict.check()
    if not config.quiet:
        print(coloured(AnsiColour.green, "Test passed:", target.description), flush=True)


def run_test_kernel(kernel_binary_path: "typing.Union[str, Path]", *, config: HarnessConfig = None,
                    builder: DiskImageBuilder = None) -> None:
    run_test_kernel_with_ramdisk(kernel_binary_path, None, config=config, builder=builder)


def run_test_kernel_with_ramdisk(kernel_binary_path: "typing.Union[str, Path]",
                                 ramdisk_path: "typing.Optional[typing.Union[str, Path]]", *,
                                 config: HarnessConfig = None, builder: DiskImageBuilder = None) -> None:
    """
    Build the boot artifacts for a test kernel and boot each of them in QEMU.

    All artifacts are created before the first emulator is started. The targets are run one after another and the
    first failure is raised: :class:`ArtifactBuildError`, :class:`SpawnError`, :class:`StreamIOError`,
    :class:`KernelTestFailed` (the kernel reported a test failure) or :class:`UnexpectedExitCodeError`.
    """
    if config is None:
        config = HarnessConfig()
    if builder is None:
        builder = _default_builder(config)
    invocation = KernelTestInvocation(Path(kernel_binary_path),
                                      Path(ramdisk_path) if ramdisk_path is not None else None,
                                      config.firmware_modes)
    targets = resolve_boot_targets(invocation, builder, pretend=config.pretend)
    verbose_status_update(config, "Testing", invocation.kernel_path, "with", len(targets), "boot target(s):",
                          ", ".join(t.mode.value for t in targets))
    for target in targets:
        run_boot_target(target, config=config)
    if not config.quiet:
        status_update("All", len(targets), "boot target(s) passed for", invocation.kernel_path)
