# SPDX-License-Identifier: MIT
"""Target platform detection.

The platform that matters for linking is the *target*, which differs from
the host when cross compiling. Build harnesses export the target triple
components to build scripts (CARGO_CFG_TARGET_OS, CARGO_CFG_TARGET_ENV);
when those are absent the host platform is used.
"""

from __future__ import annotations

import os
import platform as _platform
import sys
from collections.abc import Mapping
from dataclasses import dataclass

# sys.platform prefixes mapped to target-os names.
_HOST_OS = {
    "darwin": "macos",
    "win32": "windows",
    "cygwin": "windows",
    "linux": "linux",
    "freebsd": "freebsd",
    "openbsd": "openbsd",
    "netbsd": "netbsd",
}


@dataclass(frozen=True)
class Platform:
    """Description of the platform being linked for.

    Attributes:
        os: Operating system ('linux', 'macos', 'windows', ...).
        arch: CPU architecture ('x86_64', 'aarch64', ...).
        env: ABI environment ('gnu', 'msvc', 'musl', or '').
    """

    os: str
    arch: str
    env: str = ""

    @property
    def is_macos(self) -> bool:
        # Apple targets share the ld64/libc++ conventions.
        return self.os in ("macos", "ios", "tvos", "watchos", "visionos")

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def is_msvc(self) -> bool:
        return self.env == "msvc"

    @property
    def is_linux(self) -> bool:
        return self.os == "linux"

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.is_windows else ""


def _host_os() -> str:
    for prefix, name in _HOST_OS.items():
        if sys.platform.startswith(prefix):
            return name
    return sys.platform


def _normalize_arch(machine: str) -> str:
    machine = machine.lower()
    if machine in ("amd64", "x64"):
        return "x86_64"
    if machine == "arm64":
        return "aarch64"
    return machine


def get_host_platform() -> Platform:
    """Return the platform this interpreter runs on."""
    os_name = _host_os()
    if os_name == "windows":
        env = "msvc"
    elif os_name == "linux":
        env = "gnu"
    else:
        env = ""
    return Platform(os=os_name, arch=_normalize_arch(_platform.machine()), env=env)


def get_platform(environ: Mapping[str, str] | None = None) -> Platform:
    """Return the target platform.

    Args:
        environ: Environment to read the target description from
                 (default: os.environ).

    Returns:
        The target Platform; falls back to the host for anything the
        environment does not specify.
    """
    if environ is None:
        environ = os.environ
    host = get_host_platform()
    target_os = environ.get("CARGO_CFG_TARGET_OS")
    if not target_os:
        return host
    return Platform(
        os=target_os,
        arch=environ.get("CARGO_CFG_TARGET_ARCH") or host.arch,
        env=environ.get("CARGO_CFG_TARGET_ENV", ""),
    )
