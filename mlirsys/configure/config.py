# SPDX-License-Identifier: MIT
"""Configuration for an mlirsys run.

The Config object collects everything the orchestrator needs: the
required MLIR major version, where the installation lives, where to write
generated bindings and which header to feed the binding generator.
Values come from the environment (as exported by the build harness) and
can be overridden from the command line.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from mlirsys import LLVM_MAJOR_VERSION
from mlirsys.configure.platform import Platform, get_platform
from mlirsys.core.errors import ConfigureError

DEFAULT_HEADER = Path(__file__).resolve().parent.parent / "include" / "wrapper.h"
BINDINGS_FILENAME = "bindings.py"
OUTPUT_FORMATS = ("cargo", "flags")


def prefix_variable(major: int = LLVM_MAJOR_VERSION) -> str:
    """Name of the environment variable holding the installation prefix.

    Examples:
        >>> prefix_variable(18)
        'MLIR_SYS_180_PREFIX'
    """
    return f"MLIR_SYS_{major}0_PREFIX"


class Config:
    """Settings for discovering MLIR and generating bindings.

    Example:
        config = Config.from_env(out_dir="build/gen")
        prober = LlvmConfig(config.prefix)

    Attributes:
        major: Required MLIR/LLVM major version.
        prefix: Installation root containing bin/llvm-config, or None to
            search PATH.
        out_dir: Directory the bindings are written to.
        header: Wrapper header passed to the binding generator.
        output_format: 'cargo' for build-script directives, 'flags' for a
            linker command-line fragment.
        library: Name of the umbrella library ('MLIR').
        platform: Target platform.
    """

    def __init__(
        self,
        *,
        major: int = LLVM_MAJOR_VERSION,
        prefix: Path | str | None = None,
        out_dir: Path | str | None = None,
        header: Path | str = DEFAULT_HEADER,
        output_format: str = "cargo",
        library: str = "MLIR",
        platform: Platform | None = None,
    ) -> None:
        if output_format not in OUTPUT_FORMATS:
            raise ConfigureError(
                f"unknown output format '{output_format}' "
                f"(expected one of: {', '.join(OUTPUT_FORMATS)})"
            )
        self.major = major
        self.prefix = Path(prefix) if prefix else None
        self.out_dir = Path(out_dir) if out_dir else None
        self.header = Path(header)
        self.output_format = output_format
        self.library = library
        self.platform = platform if platform is not None else get_platform()

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> Config:
        """Build a Config from the environment.

        Reads MLIR_SYS_<MAJOR>0_PREFIX and OUT_DIR. Keyword overrides
        whose value is None are ignored so argparse results can be passed
        straight through.
        """
        if environ is None:
            environ = os.environ
        overrides = {k: v for k, v in overrides.items() if v is not None}
        major = overrides.get("major", LLVM_MAJOR_VERSION)

        settings: dict[str, Any] = {
            "major": major,
            "prefix": environ.get(prefix_variable(major)) or None,
            "out_dir": environ.get("OUT_DIR") or None,
            "platform": get_platform(environ),
        }
        settings.update(overrides)
        return cls(**settings)

    @property
    def prefix_variable(self) -> str:
        return prefix_variable(self.major)

    def bindings_path(self) -> Path:
        """Path of the generated bindings module.

        Raises:
            ConfigureError: If no output directory is configured.
        """
        if self.out_dir is None:
            raise ConfigureError(
                "no output directory: set OUT_DIR or pass --out-dir"
            )
        return self.out_dir / BINDINGS_FILENAME

    def __repr__(self) -> str:
        return (
            f"Config(major={self.major}, prefix={self.prefix}, "
            f"out_dir={self.out_dir}, platform={self.platform.os}/{self.platform.env})"
        )
