# SPDX-License-Identifier: MIT
"""Custom exceptions for mlirsys.

All mlirsys exceptions inherit from MlirSysError. The command-line entry
point catches MlirSysError, prints its message as a single line and exits
with a non-zero status; everything else propagates.
"""

from __future__ import annotations

from collections.abc import Sequence


class MlirSysError(Exception):
    """Base class for all mlirsys exceptions.

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigureError(MlirSysError):
    """Error while discovering or configuring the MLIR installation.

    Raised when the environment is incomplete, the library directory
    cannot be read, or llvm-config cannot be used.
    """


class ProbeError(ConfigureError):
    """An llvm-config query failed.

    Attributes:
        argument: The query argument (e.g. '--libdir').
        command: The full command line that was executed.
    """

    def __init__(
        self,
        argument: str,
        command: Sequence[str],
        reason: str,
    ) -> None:
        self.argument = argument
        self.command = list(command)
        super().__init__(f"llvm-config {argument} failed: {reason}")


class ProbeDecodeError(ProbeError):
    """llvm-config printed output that is not valid UTF-8."""

    def __init__(
        self,
        argument: str,
        command: Sequence[str],
        error: UnicodeDecodeError,
    ) -> None:
        self.error = error
        super().__init__(argument, command, f"output is not valid UTF-8 ({error})")


class VersionMismatchError(ConfigureError):
    """The installed llvm-config reports the wrong major version.

    Attributes:
        required: The required major version.
        found: The version string reported by llvm-config.
    """

    def __init__(self, required: int, found: str) -> None:
        self.required = required
        self.found = found
        super().__init__(
            f"failed to find correct version ({required}.x.x) of llvm-config "
            f"(found {found})"
        )


class GeneratorError(MlirSysError):
    """Binding generation failed.

    Raised when the wrapper header cannot be parsed or the generated
    bindings cannot be written.
    """
