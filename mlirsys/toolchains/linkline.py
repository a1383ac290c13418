# SPDX-License-Identifier: MIT
"""Turning llvm-config output into linker directives.

The directives are emitted in a fixed order:

1. the library directory as a search path
2. every libMLIR*.a archive found in that directory, linked statically
3. the umbrella shared library (libMLIR)
4. the libraries named by `llvm-config --libnames`
5. the system libraries named by `llvm-config --system-libs`
6. the C++ standard library of the target

Emission is append-only. If a step fails, directives from earlier steps
have already been written and the build is expected to abort.
"""

from __future__ import annotations

import logging
import os
from pathlib import PurePosixPath, PureWindowsPath
from typing import TYPE_CHECKING

from mlirsys.core.directives import LinkKind, LinkLib, SearchPath
from mlirsys.core.errors import ConfigureError
from mlirsys.toolchains.archive import parse_archive_name

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mlirsys.configure.platform import Platform
    from mlirsys.core.directives import Directive, DirectiveSink
    from mlirsys.toolchains.llvm_config import Prober

logger = logging.getLogger(__name__)

UMBRELLA_LIBRARY = "MLIR"


def system_libcpp(platform: Platform) -> str | None:
    """Name of the C++ standard library to link for a target.

    MSVC links its C++ runtime implicitly, so nothing is needed there.
    """
    if platform.is_msvc:
        return None
    if platform.is_macos:
        return "c++"
    return "stdc++"


def _absolute_path(token: str) -> PurePosixPath | PureWindowsPath | None:
    if token.startswith("/"):
        return PurePosixPath(token)
    windows = PureWindowsPath(token)
    if windows.drive and windows.root:
        return windows
    return None


def split_system_lib(token: str) -> list[Directive]:
    """Directives for one `--system-libs` token.

    llvm-config reports system libraries either as '-l<name>' flags or,
    for some dynamically linked dependencies, as absolute paths. An
    absolute path becomes a search path for its directory plus a link
    against its stem with any leading 'lib' removed.

    Examples:
        >>> split_system_lib("-lpthread")
        [LinkLib(name='pthread', kind=<LinkKind.DYLIB: 'dylib'>, directory=None)]
        >>> [d.path for d in split_system_lib("/usr/lib/libz.so")[:1]]
        ['/usr/lib']
    """
    flag = token.removeprefix("-l")
    path = _absolute_path(flag)
    if path is None:
        return [LinkLib(flag)]
    return [
        SearchPath(str(path.parent)),
        LinkLib(path.stem.removeprefix("lib")),
    ]


def _is_bare_name(token: str) -> bool:
    return not any(c in token for c in "./\\")


class LinkLineSynthesizer:
    """Emits the linker directives for an MLIR installation.

    Example:
        sink = DirectiveLog()
        LinkLineSynthesizer(sink).synthesize(LlvmConfig(), get_platform())
        print(sink.lines())

    Attributes:
        sink: Where directives are written.
        library: Umbrella library name; its component archives are the
            files named 'lib<library>*.a'.
    """

    def __init__(self, sink: DirectiveSink, library: str = UMBRELLA_LIBRARY) -> None:
        self.sink = sink
        self.library = library

    @property
    def archive_prefix(self) -> str:
        return f"lib{self.library}"

    def emit_search_path(self, libdir: str) -> None:
        self.sink.emit(SearchPath(libdir))

    def emit_component_archives(self, libdir: str) -> list[str]:
        """Link every component archive found in libdir statically.

        Returns:
            The names of the archives that were linked.

        Raises:
            ConfigureError: If the directory cannot be listed.
        """
        try:
            entries = sorted(os.listdir(libdir))
        except OSError as e:
            raise ConfigureError(f"cannot list library directory {libdir}: {e}") from e

        linked: list[str] = []
        for entry in entries:
            if not entry.startswith(self.archive_prefix):
                continue
            name = parse_archive_name(entry)
            if name is None:
                continue
            self.sink.emit(LinkLib(name, LinkKind.STATIC, directory=libdir))
            linked.append(name)
        logger.info("Linking %d %s archives from %s", len(linked), self.library, libdir)
        return linked

    def emit_umbrella(self) -> None:
        self.sink.emit(LinkLib(self.library))

    def emit_libnames(self, libnames: Iterable[str]) -> None:
        """Link the libraries reported by `llvm-config --libnames`."""
        for token in libnames:
            name = parse_archive_name(token)
            if name is None and _is_bare_name(token):
                name = token
            if name is None:
                logger.debug("Skipping library name %s", token)
                continue
            self.sink.emit(LinkLib(name))

    def emit_system_libs(self, system_libs: Iterable[str]) -> None:
        """Link the libraries reported by `llvm-config --system-libs`."""
        for token in system_libs:
            for directive in split_system_lib(token):
                self.sink.emit(directive)

    def emit_system_libcpp(self, platform: Platform) -> None:
        name = system_libcpp(platform)
        if name is not None:
            self.sink.emit(LinkLib(name))

    def synthesize(self, prober: Prober, platform: Platform) -> None:
        """Run every step against a live prober.

        Raises:
            ProbeError: If any llvm-config query fails.
            ConfigureError: If the library directory cannot be listed.
        """
        libdir = prober.libdir()
        self.emit_search_path(libdir)
        self.emit_component_archives(libdir)
        self.emit_umbrella()
        self.emit_libnames(prober.libnames())
        self.emit_system_libs(prober.system_libs())
        self.emit_system_libcpp(platform)
