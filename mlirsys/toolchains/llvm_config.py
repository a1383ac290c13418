# SPDX-License-Identifier: MIT
"""Querying an installed LLVM/MLIR through llvm-config.

LlvmConfig wraps the llvm-config executable. Every query is run as

    llvm-config --link-static <argument>

with an explicit argument list (no shell), and returns the trimmed
standard output. Nothing is cached: each call spawns one process.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from mlirsys import LLVM_MAJOR_VERSION
from mlirsys.configure.platform import Platform, get_host_platform
from mlirsys.core.errors import ProbeDecodeError, ProbeError, VersionMismatchError

logger = logging.getLogger(__name__)

TOOL_NAME = "llvm-config"


class Prober(ABC):
    """Answers llvm-config queries.

    Subclasses implement probe(); the named queries are built on it.
    """

    @abstractmethod
    def probe(self, argument: str) -> str:
        """Run one query and return its trimmed output."""

    def version(self) -> str:
        return self.probe("--version")

    def prefix_dir(self) -> str:
        return self.probe("--prefix")

    def cmake_dir(self) -> str:
        return self.probe("--cmakedir")

    def libdir(self) -> str:
        return self.probe("--libdir")

    def includedir(self) -> str:
        return self.probe("--includedir")

    def libnames(self) -> list[str]:
        """All constituent library file names."""
        return split_tokens(self.probe("--libnames"))

    def system_libs(self) -> list[str]:
        """System libraries the static libraries depend on."""
        return split_tokens(self.probe("--system-libs"))


class LlvmConfig(Prober):
    """An llvm-config executable.

    Example:
        llvm = LlvmConfig(prefix="/usr/lib/llvm-18")
        libdir = llvm.libdir()

    Attributes:
        prefix: Installation root, or None to resolve the tool via PATH.
        executable: The program that is run.
    """

    def __init__(
        self,
        prefix: Path | str | None = None,
        *,
        host: Platform | None = None,
    ) -> None:
        self.prefix = Path(prefix) if prefix else None
        # The executable runs on the build host, not the target.
        self._host = host if host is not None else get_host_platform()
        self.executable = self._resolve_executable()

    def _resolve_executable(self) -> str:
        name = TOOL_NAME + self._host.exe_suffix
        if self.prefix is None:
            return name
        return str(self.prefix / "bin" / name)

    def command(self, argument: str) -> list[str]:
        """The argument list used for a query."""
        return [self.executable, "--link-static", argument]

    def probe(self, argument: str) -> str:
        """Run one query and return its trimmed output.

        Args:
            argument: The llvm-config option to query (e.g. '--libdir').

        Returns:
            Standard output decoded as UTF-8 with surrounding whitespace
            removed.

        Raises:
            ProbeError: If the process cannot be started or exits non-zero.
            ProbeDecodeError: If the output is not valid UTF-8.
        """
        cmd = self.command(argument)
        logger.debug("Running %s", shlex.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, check=False)
        except OSError as e:
            raise ProbeError(argument, cmd, str(e)) from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            reason = f"exit status {result.returncode}"
            if stderr:
                reason += f": {stderr}"
            raise ProbeError(argument, cmd, reason)

        try:
            output = result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProbeDecodeError(argument, cmd, e) from e
        return output.strip()

    def __repr__(self) -> str:
        return f"LlvmConfig({self.executable!r})"


def split_tokens(output: str) -> list[str]:
    """Split space-separated llvm-config output, dropping empty tokens.

    Examples:
        >>> split_tokens("-lm  -lz")
        ['-lm', '-lz']
        >>> split_tokens("")
        []
    """
    return output.split()


def check_version(prober: Prober, major: int = LLVM_MAJOR_VERSION) -> str:
    """Require the installation to have exactly the given major version.

    The version must have the dotted form '<major>.<rest>'; a bare '18'
    is rejected.

    Returns:
        The version string reported by llvm-config.

    Raises:
        VersionMismatchError: If the major version does not match.
    """
    version = prober.version()
    if not version.startswith(f"{major}."):
        raise VersionMismatchError(major, version)
    logger.info("Found llvm-config version %s", version)
    return version


def clang_builtin_include(
    major: int = LLVM_MAJOR_VERSION,
    prefix: Path | str | None = None,
    *,
    host: Platform | None = None,
) -> Path | None:
    """Locate clang's builtin headers (stddef.h, stdbool.h, stdint.h).

    libclang needs them to parse any header that includes the C standard
    headers, and the libclang wheel does not ship them. The installation
    prefix is checked first, then each candidate clang is asked for its
    resource directory.

    Returns:
        The include directory, or None if no candidate provides one.
    """
    if prefix:
        candidate = Path(prefix) / "lib" / "clang" / str(major) / "include"
        if candidate.is_dir():
            return candidate

    if host is None:
        host = get_host_platform()
    compilers = [f"clang-{major}{host.exe_suffix}", f"clang{host.exe_suffix}"]
    if prefix:
        compilers.insert(0, str(Path(prefix) / "bin" / f"clang{host.exe_suffix}"))

    for compiler in compilers:
        cmd = [compiler, "-print-resource-dir"]
        logger.debug("Running %s", shlex.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            logger.debug("Cannot run %s: %s", compiler, e)
            continue
        if result.returncode != 0:
            continue
        include = Path(result.stdout.strip()) / "include"
        if (include / "stddef.h").is_file():
            logger.debug("Using clang builtin headers from %s", include)
            return include

    logger.debug("No clang builtin headers found")
    return None
