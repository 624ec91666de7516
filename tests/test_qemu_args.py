from pathlib import Path

import pytest

from pykerneltest.boot_targets import BiosBootTarget, UefiBootTarget, UefiPxeBootTarget
from pykerneltest.config import HarnessConfig
from pykerneltest.errors import MissingFirmwareError
from pykerneltest.qemu_utils import QEMU_BASELINE_ARGS, EmulatorArgs, build_emulator_args, find_ovmf_firmware

BASELINE = ["-device", "isa-debug-exit,iobase=0xf4,iosize=0x04", "-serial", "stdio", "-display", "none",
            "--no-reboot"]


@pytest.fixture
def ovmf(tmp_path) -> Path:
    result = tmp_path / "OVMF.fd"
    result.write_bytes(b"firmware")
    return result


def _config(ovmf=None, **kwargs) -> HarnessConfig:
    return HarnessConfig(quiet=True, qemu_command=Path("/opt/qemu/bin/qemu-system-x86_64"), ovmf_path=ovmf,
                         **kwargs)


def test_baseline_args():
    assert list(QEMU_BASELINE_ARGS) == BASELINE


def test_bios_args():
    args = build_emulator_args(BiosBootTarget(Path("/tmp/k.mbr")), config=_config())
    assert args.qemu_command == "/opt/qemu/bin/qemu-system-x86_64"
    assert list(args.args) == ["-drive", "format=raw,file=/tmp/k.mbr", *BASELINE]
    assert args.commandline == ["/opt/qemu/bin/qemu-system-x86_64", "-drive", "format=raw,file=/tmp/k.mbr",
                                *BASELINE]


def test_uefi_args(ovmf):
    args = build_emulator_args(UefiBootTarget(Path("/tmp/k.gpt")), config=_config(ovmf))
    assert list(args.args) == ["-bios", str(ovmf), "-drive", "format=raw,file=/tmp/k.gpt", *BASELINE]


def test_uefi_pxe_args(ovmf):
    args = build_emulator_args(UefiPxeBootTarget(Path("/tmp/k.tftp")), config=_config(ovmf))
    assert list(args.args) == [
        "-netdev", "user,id=net0,net=192.168.17.0/24,tftp=/tmp/k.tftp,bootfile=bootloader,id=net0",
        "-device", "virtio-net-pci,netdev=net0",
        "-bios", str(ovmf),
        *BASELINE]


def test_baseline_is_last(ovmf):
    for target in (BiosBootTarget(Path("k.mbr")), UefiBootTarget(Path("k.gpt")), UefiPxeBootTarget(Path("k.tftp"))):
        args = build_emulator_args(target, config=_config(ovmf))
        assert list(args.args[-len(BASELINE):]) == BASELINE
        assert args.args.count("--no-reboot") == 1


def test_emulator_args_immutable():
    args = EmulatorArgs("qemu", ["-a", "b"])
    cmdline = args.commandline
    cmdline.append("-c")
    assert args.commandline == ["qemu", "-a", "b"]
    assert args.args == ("-a", "b")
    assert args == EmulatorArgs("qemu", ("-a", "b"))
    assert args != EmulatorArgs("qemu", ("-a",))


def test_qemu_found_in_path(tmp_path, monkeypatch):
    fake = tmp_path / "qemu-system-x86_64"
    fake.write_text("#!/bin/sh\n")
    fake.chmod(0o755)
    monkeypatch.setenv("PATH", str(tmp_path))
    args = build_emulator_args(BiosBootTarget(Path("k.mbr")), config=HarnessConfig(quiet=True))
    assert args.qemu_command == str(fake)


def test_qemu_not_in_path(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    args = build_emulator_args(BiosBootTarget(Path("k.mbr")), config=HarnessConfig(quiet=True))
    assert args.qemu_command == "qemu-system-x86_64"


def test_ovmf_from_environment(ovmf, monkeypatch):
    monkeypatch.setenv("OVMF_PATH", str(ovmf))
    assert find_ovmf_firmware(HarnessConfig(quiet=True)) == ovmf


def test_configured_ovmf_wins(ovmf, tmp_path, monkeypatch):
    other = tmp_path / "other.fd"
    other.write_bytes(b"")
    monkeypatch.setenv("OVMF_PATH", str(other))
    assert find_ovmf_firmware(_config(ovmf)) == ovmf


def test_configured_ovmf_missing(tmp_path):
    with pytest.raises(MissingFirmwareError, match="does not exist"):
        find_ovmf_firmware(_config(tmp_path / "missing.fd"))
    # only a warning in pretend mode
    assert find_ovmf_firmware(_config(tmp_path / "missing.fd", pretend=True)) == tmp_path / "missing.fd"


def test_ovmf_not_found(tmp_path, monkeypatch):
    monkeypatch.setenv("OVMF_PATH", str(tmp_path / "missing.fd"))
    monkeypatch.setattr("pykerneltest.qemu_utils.OVMF_CANDIDATES", [str(tmp_path / "also-missing.fd")])
    with pytest.raises(MissingFirmwareError, match="Could not find OVMF") as excinfo:
        build_emulator_args(UefiBootTarget(Path("k.gpt")), config=HarnessConfig(quiet=True))
    assert excinfo.value.fixit_hint
    # BIOS boot does not need the firmware
    build_emulator_args(BiosBootTarget(Path("k.mbr")), config=HarnessConfig(quiet=True))
    # pretend mode uses a placeholder
    pretend_config = HarnessConfig(quiet=True, pretend=True)
    args = build_emulator_args(UefiBootTarget(Path("k.gpt")), config=pretend_config)
    assert args.args[0] == "-bios"
    assert args.args[1].endswith("OVMF.fd")
