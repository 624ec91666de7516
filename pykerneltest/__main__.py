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
import shutil
import typing
from pathlib import Path

import argcomplete

from .boot_targets import FirmwareModes
from .config import HarnessConfig, default_config_path, load_json_config
from .processutils import keep_terminal_sane, run_and_kill_children_on_exit
from .runner import run_test_kernel_with_ramdisk
from .utils import fatal_error, status_update


def get_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kernel-test-runner", allow_abbrev=False,
        description="Boot a test kernel in QEMU and report the result written to the isa-debug-exit device.",
        formatter_class=lambda prog: argparse.HelpFormatter(prog, width=shutil.get_terminal_size()[0]))
    parser.add_argument("kernel", metavar="KERNEL", type=Path, help="The kernel binary to test")
    parser.add_argument("--ramdisk", type=Path, default=None, help="Ramdisk to pass to the kernel")
    parser.add_argument("--firmware", choices=[m.value for m in FirmwareModes], default=None,
                        help="Firmware configurations to boot the kernel with (default: all)")
    parser.add_argument("--qemu-cmd", "--qemu", type=Path, default=None,
                        help="Path to QEMU (default: find qemu-system-x86_64 in $PATH)")
    parser.add_argument("--ovmf", type=Path, default=None, help="Path to the OVMF firmware used for UEFI boot")
    parser.add_argument("--image-builder", default=None, metavar="COMMAND",
                        help="Command that creates the boot artifacts. It is invoked as "
                             "`COMMAND {bios,uefi,uefi-pxe} --kernel K [--ramdisk R] --output OUT`")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Kill QEMU if it has not exited after this many seconds (default: wait forever)")
    parser.add_argument("--config-file", metavar="FILE", type=Path, default=default_config_path(),
                        help="The JSON config file that is used to load the default settings (default: '" +
                             str(default_config_path()) + "')")
    parser.add_argument("--pretend", "-p", action="store_true",
                        help="Only print the commands instead of running them")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", default=None, help="Print more status messages")
    verbosity.add_argument("--quiet", "-q", action="store_true", default=None,
                           help="Don't print the commands that are executed")
    return parser


def parse_arguments(argv: "typing.Optional[list[str]]" = None) -> "tuple[argparse.Namespace, HarnessConfig]":
    parser = get_argument_parser()
    argcomplete.autocomplete(parser)
    args = parser.parse_args(argv)
    json_config: "dict[str, typing.Any]" = {}
    config_path = Path(args.config_file).expanduser().absolute()
    if config_path.exists():
        try:
            json_config = load_json_config(config_path)
        except (OSError, ValueError) as e:
            fatal_error("Could not load config file", config_path, "-", e)
    try:
        config = HarnessConfig.from_values(args, json_config)
    except ValueError as e:
        parser.error(str(e))
    if config.verbose:
        status_update("Using", config)
    return args, config


def _main(argv: "typing.Optional[list[str]]" = None) -> None:
    args, config = parse_arguments(argv)
    if not config.image_builder_command:
        fatal_error("No disk image builder configured",
                    fixit_hint="Pass --image-builder=COMMAND or set \"image_builder\" in " + str(args.config_file))
    run_test_kernel_with_ramdisk(args.kernel, args.ramdisk, config=config)


def main() -> None:
    # QEMU can mess up the TTY state if it doesn't exit cleanly
    with keep_terminal_sane():
        run_and_kill_children_on_exit(_main)


if __name__ == "__main__":
    main()
