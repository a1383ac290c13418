# SPDX-License-Identifier: MIT
"""Rendering recorded directives as linker command-line flags.

Build systems that do not speak the build-script directive protocol can
ask for the link line instead. Each linker convention spells search paths
and libraries differently:

    GNU ld / lld:  -L/dir  -Wl,-Bstatic -lMLIRIR -Wl,-Bdynamic  -lz
    Apple ld64:    -L/dir  /dir/libMLIRIR.a  -lz
    MSVC link.exe: /LIBPATH:C:\\dir  MLIRIR.lib  z.lib
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mlirsys.core.directives import LinkLib, SearchPath

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mlirsys.configure.platform import Platform
    from mlirsys.core.directives import Directive


class LinkerConvention:
    """How one linker family spells search paths and libraries.

    Variables:
        Lprefix: Prefix for a library search directory.
        lprefix: Prefix for a library name.
        libsuffix: Suffix appended to a library name.
    """

    Lprefix = "-L"
    lprefix = "-l"
    libsuffix = ""

    def search_path(self, path: str) -> list[str]:
        return [f"{self.Lprefix}{path}"]

    def dylib(self, lib: LinkLib) -> list[str]:
        return [f"{self.lprefix}{lib.name}{self.libsuffix}"]

    def static_group(self, libs: list[LinkLib]) -> list[str]:
        """Flags for a run of consecutive static libraries."""
        flags = ["-Wl,-Bstatic"]
        for lib in libs:
            flags.extend(self.dylib(lib))
        flags.append("-Wl,-Bdynamic")
        return flags


class DarwinLinker(LinkerConvention):
    """Apple ld64, which has no -Bstatic; archives are passed by path."""


    def static_group(self, libs: list[LinkLib]) -> list[str]:
        flags: list[str] = []
        for lib in libs:
            if lib.directory is not None:
                flags.append(f"{lib.directory}/lib{lib.name}.a")
            else:
                flags.extend(self.dylib(lib))
        return flags


class MsvcLinker(LinkerConvention):
    """MSVC link.exe; static and import libraries are both '<name>.lib'."""

    Lprefix = "/LIBPATH:"
    lprefix = ""
    libsuffix = ".lib"

    def static_group(self, libs: list[LinkLib]) -> list[str]:
        flags: list[str] = []
        for lib in libs:
            flags.extend(self.dylib(lib))
        return flags


def linker_for(platform: Platform) -> LinkerConvention:
    """Pick the linker convention for a target platform."""
    if platform.is_msvc:
        return MsvcLinker()
    if platform.is_macos:
        return DarwinLinker()
    return LinkerConvention()


def render_link_flags(
    directives: Iterable[Directive],
    platform: Platform,
) -> list[str]:
    """Turn directives into linker flags for the target platform.

    Search paths are de-duplicated (first occurrence wins). Libraries keep
    their emission order, including repeats, since archive order can
    matter to single-pass linkers. Metadata and rebuild triggers have no
    linker spelling and are ignored.

    Args:
        directives: Directives in emission order.
        platform: Target platform.

    Returns:
        List of linker arguments.
    """
    linker = linker_for(platform)
    flags: list[str] = []
    seen_paths: set[str] = set()
    statics: list[LinkLib] = []

    def flush_statics() -> None:
        if statics:
            flags.extend(linker.static_group(statics))
            statics.clear()

    for directive in directives:
        if isinstance(directive, SearchPath):
            if directive.path in seen_paths:
                continue
            seen_paths.add(directive.path)
            flush_statics()
            flags.extend(linker.search_path(directive.path))
        elif isinstance(directive, LinkLib):
            if directive.is_static:
                statics.append(directive)
            else:
                flush_statics()
                flags.extend(linker.dylib(directive))

    flush_statics()
    return flags
