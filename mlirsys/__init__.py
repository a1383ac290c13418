# SPDX-License-Identifier: MIT
"""
mlirsys: link against an installed MLIR and generate ctypes bindings.

mlirsys asks llvm-config about an MLIR installation, turns the answers into
linker directives for the target platform, and runs libclang over the MLIR
C API headers to produce a ctypes module.
"""

from __future__ import annotations

__version__ = "0.1.0"

# MLIR/LLVM major version the bindings are generated for.
LLVM_MAJOR_VERSION = 18

# Re-export commonly used classes for convenient imports
# These imports must be after LLVM_MAJOR_VERSION is defined
from mlirsys.configure.config import Config  # noqa: E402
from mlirsys.core.directives import CargoWriter, DirectiveLog  # noqa: E402
from mlirsys.core.errors import MlirSysError  # noqa: E402
from mlirsys.generators.bindings import BindingGenerator  # noqa: E402
from mlirsys.toolchains.linkline import LinkLineSynthesizer  # noqa: E402
from mlirsys.toolchains.llvm_config import LlvmConfig, check_version  # noqa: E402

# Public API exports
__all__ = [
    # Version
    "__version__",
    "LLVM_MAJOR_VERSION",
    # Configuration
    "Config",
    # Directive sinks
    "CargoWriter",
    "DirectiveLog",
    # Discovery and linking
    "LlvmConfig",
    "check_version",
    "LinkLineSynthesizer",
    # Bindings
    "BindingGenerator",
    # Errors
    "MlirSysError",
]
