from pathlib import Path

import pytest

from pykerneltest import (ArtifactBuildError, KernelTestFailed, UnexpectedExitCodeError, run_test_kernel,
                          run_test_kernel_with_ramdisk)
from pykerneltest.boot_targets import FirmwareModes
from pykerneltest.config import HarnessConfig
from pykerneltest.image_builder import CommandDiskImageBuilder
from pykerneltest.utils import error_message
from .mock_environment import (FAKE_IMAGE_BUILDER, MockImageBuilder, make_fake_qemu, read_recorded_argv,
                               record_argv_script)


@pytest.fixture
def ovmf(tmp_path) -> Path:
    result = tmp_path / "OVMF.fd"
    result.write_bytes(b"firmware")
    return result


def _config(qemu: Path, ovmf: Path, **kwargs) -> HarnessConfig:
    return HarnessConfig(quiet=True, qemu_command=qemu, ovmf_path=ovmf, **kwargs)


def test_all_targets_pass(fake_qemu, argv_file, kernel, ovmf, image_builder, capfd):
    qemu = fake_qemu(record_argv_script(33, stdout="ok\n"))
    run_test_kernel(kernel, config=_config(qemu, ovmf), builder=image_builder)
    recorded = read_recorded_argv(argv_file)
    assert len(recorded) == 3
    # UEFI disk image, then PXE, then BIOS
    assert recorded[0][:4] == ["-bios", str(ovmf), "-drive", "format=raw,file=" + str(kernel.with_suffix(".gpt"))]
    assert recorded[1][0] == "-netdev"
    assert "tftp=" + str(kernel.with_suffix(".tftp")) in recorded[1][1]
    assert recorded[2][:2] == ["-drive", "format=raw,file=" + str(kernel.with_suffix(".mbr"))]
    assert all(r[-1] == "--no-reboot" for r in recorded)
    assert capfd.readouterr().out.count("\nRunning ") == 3


def test_kernel_reports_failure(fake_qemu, argv_file, kernel, ovmf, image_builder):
    qemu = fake_qemu(record_argv_script(35))
    with pytest.raises(KernelTestFailed, match="^Test failed$"):
        run_test_kernel(kernel, config=_config(qemu, ovmf), builder=image_builder)
    # All artifacts are built up front but only the first target is booted
    assert len(image_builder.calls) == 3
    assert len(read_recorded_argv(argv_file)) == 1


def test_unexpected_exit_code(fake_qemu, argv_file, kernel, ovmf, image_builder):
    qemu = fake_qemu(record_argv_script(1))
    with pytest.raises(UnexpectedExitCodeError, match="^Test failed with unexpected exit code `1`$"):
        run_test_kernel(kernel, config=_config(qemu, ovmf), builder=image_builder)


def test_killed_emulator(fake_qemu, kernel, ovmf, image_builder):
    qemu = fake_qemu("os.kill(os.getpid(), signal.SIGKILL)\n")
    with pytest.raises(UnexpectedExitCodeError, match="^Test failed with unexpected exit code `None`$") as excinfo:
        run_test_kernel(kernel, config=_config(qemu, ovmf), builder=image_builder)
    assert excinfo.value.exit_code is None


def test_no_emulator_after_build_failure(fake_qemu, argv_file, kernel, ovmf):
    qemu = fake_qemu(record_argv_script(33))
    builder = MockImageBuilder(fail_on="bios")
    with pytest.raises(ArtifactBuildError, match="Invalid kernel format"):
        run_test_kernel(kernel, config=_config(qemu, ovmf), builder=builder)
    assert read_recorded_argv(argv_file) == []


def test_bios_only(fake_qemu, argv_file, kernel, ovmf, image_builder):
    qemu = fake_qemu(record_argv_script(33))
    run_test_kernel(kernel, config=_config(qemu, ovmf, firmware_modes=FirmwareModes.BIOS), builder=image_builder)
    assert [c[0] for c in image_builder.calls] == ["bios"]
    assert len(read_recorded_argv(argv_file)) == 1


def test_missing_builder(kernel):
    with pytest.raises(ValueError, match="No disk image builder configured"):
        run_test_kernel(kernel, config=HarnessConfig(quiet=True))


@pytest.fixture
def builder_log(tmp_path, monkeypatch) -> Path:
    result = tmp_path / "builder-log.txt"
    monkeypatch.setenv("FAKE_BUILDER_LOG", str(result))
    return result


def test_command_image_builder(tmp_path, fake_qemu, argv_file, builder_log, kernel, ovmf):
    qemu = fake_qemu(record_argv_script(33))
    builder_script = make_fake_qemu(tmp_path / "make-boot-image", FAKE_IMAGE_BUILDER)
    ramdisk = tmp_path / "ramdisk.img"
    ramdisk.write_bytes(b"")
    config = _config(qemu, ovmf, image_builder_command=[str(builder_script)])
    run_test_kernel_with_ramdisk(kernel, ramdisk, config=config)
    assert read_recorded_argv(builder_log) == [
        [kind, "--kernel", str(kernel), "--ramdisk", str(ramdisk), "--output", str(kernel.with_suffix(suffix))]
        for kind, suffix in (("uefi", ".gpt"), ("uefi-pxe", ".tftp"), ("bios", ".mbr"))]
    assert kernel.with_suffix(".tftp").is_dir()
    assert len(read_recorded_argv(argv_file)) == 3


def test_command_image_builder_failure(tmp_path, fake_qemu, argv_file, builder_log, kernel, ovmf, monkeypatch):
    monkeypatch.setenv("FAKE_BUILDER_FAIL", "uefi")
    qemu = fake_qemu(record_argv_script(33))
    builder_script = make_fake_qemu(tmp_path / "make-boot-image", FAKE_IMAGE_BUILDER)
    config = _config(qemu, ovmf)
    with pytest.raises(ArtifactBuildError, match="failed with exit code 1") as excinfo:
        run_test_kernel(kernel, config=config, builder=CommandDiskImageBuilder([str(builder_script)], config=config))
    assert excinfo.value.artifact == kernel.with_suffix(".gpt")
    assert len(read_recorded_argv(builder_log)) == 1
    assert read_recorded_argv(argv_file) == []


def test_command_image_builder_no_output(tmp_path, kernel):
    config = HarnessConfig(quiet=True)
    script = make_fake_qemu(tmp_path / "lazy-builder", "sys.exit(0)\n")
    builder = CommandDiskImageBuilder([str(script)], config=config)
    with pytest.raises(ArtifactBuildError, match="did not create"):
        builder.create_bios_disk_image(kernel, None, kernel.with_suffix(".mbr"))


def test_pretend_mode(tmp_path, kernel, capsys):
    config = HarnessConfig(pretend=True, qemu_command=tmp_path / "qemu", ovmf_path=tmp_path / "OVMF.fd",
                           image_builder_command=[str(tmp_path / "builder")])
    run_test_kernel(kernel, config=config)
    output = capsys.readouterr().out
    assert output.count(str(tmp_path / "qemu")) == 3
    assert "-netdev" in output


def test_pretend_mode_kernel_not_built(tmp_path, capsys):
    kernel = tmp_path / "not-built-yet.bin"
    config = HarnessConfig(pretend=True, qemu_command=tmp_path / "qemu", ovmf_path=tmp_path / "OVMF.fd",
                           image_builder_command=[str(tmp_path / "builder")], firmware_modes=FirmwareModes.BIOS)
    run_test_kernel(kernel, config=config)
    captured = capsys.readouterr()
    assert "does not exist" in captured.err
    assert "format=raw,file=" + str(tmp_path / "not-built-yet.mbr") in captured.out


def test_error_context_does_not_leak(fake_qemu, argv_file, kernel, ovmf, image_builder, capsys):
    qemu = fake_qemu(record_argv_script(35))
    with pytest.raises(KernelTestFailed) as excinfo:
        run_test_kernel(kernel, config=_config(qemu, ovmf, firmware_modes=FirmwareModes.BIOS), builder=image_builder)
    assert excinfo.value.error_context == "while running bios test"
    capsys.readouterr()
    # A later unrelated error must not be reported with the context of the failed run
    error_message("something else")
    assert "while running" not in capsys.readouterr().err
