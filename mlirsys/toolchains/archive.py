# SPDX-License-Identifier: MIT
"""Recognizing static archive file names."""

from __future__ import annotations

ARCHIVE_PREFIX = "lib"
ARCHIVE_SUFFIX = ".a"


def parse_archive_name(name: str) -> str | None:
    """Extract the library name from a static archive file name.

    Only names of the form 'lib<name>.a' match. A non-match means "not an
    archive", not an error.

    Args:
        name: A file name (not a path).

    Returns:
        The name between 'lib' and '.a', or None.

    Examples:
        >>> parse_archive_name("libMLIRIR.a")
        'MLIRIR'
        >>> parse_archive_name("lib.a")
        ''
        >>> parse_archive_name("libMLIR.so") is None
        True
    """
    if not name.startswith(ARCHIVE_PREFIX):
        return None
    rest = name[len(ARCHIVE_PREFIX) :]
    if not rest.endswith(ARCHIVE_SUFFIX):
        return None
    return rest[: -len(ARCHIVE_SUFFIX)]
