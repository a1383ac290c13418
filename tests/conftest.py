# SPDX-License-Identifier: MIT
"""Shared fixtures for mlirsys tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from mlirsys.core.errors import ProbeError
from mlirsys.toolchains.llvm_config import Prober


class FakeLlvmConfig(Prober):
    """Answers llvm-config queries from a table and records them."""

    def __init__(self, responses: Mapping[str, str | Exception]) -> None:
        self.responses = dict(responses)
        self.calls: list[str] = []

    def probe(self, argument: str) -> str:
        self.calls.append(argument)
        if argument not in self.responses:
            raise ProbeError(
                argument, ["llvm-config", "--link-static", argument], "not available"
            )
        value = self.responses[argument]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def fake_llvm() -> Callable[..., FakeLlvmConfig]:
    """Factory for FakeLlvmConfig with sensible defaults."""

    def make(**overrides: str | Exception) -> FakeLlvmConfig:
        responses: dict[str, str | Exception] = {
            "--version": "18.1.6",
            "--prefix": "/opt/llvm-18",
            "--cmakedir": "/opt/llvm-18/lib/cmake/llvm",
            "--libdir": "/opt/llvm-18/lib",
            "--includedir": "/opt/llvm-18/include",
            "--libnames": "libLLVMCore.a libLLVMSupport.a",
            "--system-libs": "-lrt -ldl -lm",
        }
        for key, value in overrides.items():
            responses["--" + key.replace("_", "-")] = value
        return FakeLlvmConfig(responses)

    return make


@pytest.fixture
def mlir_libdir(tmp_path: Path) -> Path:
    """A library directory with two MLIR component archives."""
    libdir = tmp_path / "lib"
    libdir.mkdir()
    for name in ("libMLIRFoo.a", "libMLIRBar.a", "readme.txt"):
        (libdir / name).write_text("")
    return libdir
