# SPDX-License-Identifier: MIT
"""Build-harness directives and the sinks that receive them.

Every component that produces linker or rebuild instructions writes them to
a DirectiveSink instead of printing directly. The CargoWriter sink renders
them in the line-oriented build-script protocol:

    cargo::metadata=PREFIX=/usr/lib/llvm-18
    cargo:rerun-if-changed=wrapper.h
    cargo:rustc-link-search=/usr/lib/llvm-18/lib
    cargo:rustc-link-lib=static=MLIRIR
    cargo:rustc-link-lib=MLIR

DirectiveLog records directives in memory so they can be inspected or
rendered as linker flags afterwards.
"""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TextIO, Union

if TYPE_CHECKING:
    from collections.abc import Iterator


class LinkKind(enum.Enum):
    """How a library is linked."""

    STATIC = "static"
    DYLIB = "dylib"


@dataclass(frozen=True)
class SearchPath:
    """Add a directory to the library search path."""

    path: str


@dataclass(frozen=True)
class LinkLib:
    """Link a library by its platform-neutral name.

    Attributes:
        name: Library name without prefix or suffix (e.g. 'MLIRIR').
        kind: Static or dynamic linkage.
        directory: Directory the archive was found in, if known.
    """

    name: str
    kind: LinkKind = LinkKind.DYLIB
    directory: str | None = None

    @property
    def is_static(self) -> bool:
        return self.kind is LinkKind.STATIC


@dataclass(frozen=True)
class Metadata:
    """Key/value published to dependent builds."""

    key: str
    value: str


@dataclass(frozen=True)
class RerunIfChanged:
    """Rebuild trigger for a file."""

    path: str


Directive = Union[SearchPath, LinkLib, Metadata, RerunIfChanged]


class DirectiveSink(Protocol):
    """Anything that accepts directives."""

    def emit(self, directive: Directive) -> None: ...


def format_directive(directive: Directive) -> str:
    """Render a directive as a single build-script protocol line.

    Examples:
        >>> format_directive(LinkLib("MLIRIR", LinkKind.STATIC))
        'cargo:rustc-link-lib=static=MLIRIR'
        >>> format_directive(LinkLib("z"))
        'cargo:rustc-link-lib=z'
    """
    if isinstance(directive, SearchPath):
        return f"cargo:rustc-link-search={directive.path}"
    if isinstance(directive, LinkLib):
        if directive.is_static:
            return f"cargo:rustc-link-lib=static={directive.name}"
        return f"cargo:rustc-link-lib={directive.name}"
    if isinstance(directive, Metadata):
        return f"cargo::metadata={directive.key}={directive.value}"
    if isinstance(directive, RerunIfChanged):
        return f"cargo:rerun-if-changed={directive.path}"
    raise TypeError(f"Not a directive: {directive!r}")


class CargoWriter:
    """Sink that prints each directive as a protocol line.

    Lines are flushed immediately; the harness may abort the build at any
    point and whatever was already printed stays in effect.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement of sys.stdout is seen.
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, directive: Directive) -> None:
        self.stream.write(format_directive(directive) + "\n")
        self.stream.flush()


class DirectiveLog:
    """Sink that records directives in emission order."""

    def __init__(self) -> None:
        self.directives: list[Directive] = []

    def emit(self, directive: Directive) -> None:
        self.directives.append(directive)

    def __iter__(self) -> Iterator[Directive]:
        return iter(self.directives)

    def __len__(self) -> int:
        return len(self.directives)

    def search_paths(self) -> list[str]:
        return [d.path for d in self.directives if isinstance(d, SearchPath)]

    def libraries(self, kind: LinkKind | None = None) -> list[str]:
        """Names of linked libraries, optionally filtered by kind."""
        return [
            d.name
            for d in self.directives
            if isinstance(d, LinkLib) and (kind is None or d.kind is kind)
        ]

    def lines(self) -> list[str]:
        return [format_directive(d) for d in self.directives]
