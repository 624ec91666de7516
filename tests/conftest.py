from pathlib import Path

import pytest

from pykerneltest.config import HarnessConfig
from .mock_environment import MockImageBuilder, make_fake_qemu


@pytest.fixture
def config() -> HarnessConfig:
    return HarnessConfig(quiet=True)


@pytest.fixture
def kernel(tmp_path) -> Path:
    result = tmp_path / "test-kernel.bin"
    result.write_bytes(b"\x7fELF fake kernel")
    return result


@pytest.fixture
def image_builder() -> MockImageBuilder:
    return MockImageBuilder()


@pytest.fixture
def argv_file(tmp_path, monkeypatch) -> Path:
    """File that fake emulators created with record_argv_script() write their command line to"""
    result = tmp_path / "argv.txt"
    monkeypatch.setenv("FAKE_QEMU_ARGV_FILE", str(result))
    return result


@pytest.fixture
def fake_qemu(tmp_path):
    def make(body: str, name: str = "fake-qemu") -> Path:
        return make_fake_qemu(tmp_path / name, body)

    return make
