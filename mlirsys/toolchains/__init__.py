# SPDX-License-Identifier: MIT
"""MLIR toolchain discovery (llvm-config) and link-line synthesis."""

from mlirsys.toolchains.archive import parse_archive_name
from mlirsys.toolchains.linkline import (
    LinkLineSynthesizer,
    split_system_lib,
    system_libcpp,
)
from mlirsys.toolchains.llvm_config import (
    LlvmConfig,
    check_version,
    clang_builtin_include,
)

__all__ = [
    "parse_archive_name",
    "LinkLineSynthesizer",
    "split_system_lib",
    "system_libcpp",
    "LlvmConfig",
    "check_version",
    "clang_builtin_include",
]
