"""Build information and the user agent string of eraser components."""

from __future__ import annotations

import platform

BUILD_VERSION = ""
"""Version set at build time."""

DEFAULT_REPO = "ghcr.io/azure"
"""Default repository for images."""

BUILD_TIME = ""
"""Date of the build."""

VCS_COMMIT = ""
"""Commit hash of the build."""

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}

OS_NAME = platform.system().lower()
ARCH = _ARCH_ALIASES.get(platform.machine().lower(), platform.machine().lower())


def get_user_agent(component: str) -> str:
    """Return ``eraser/<component>/<version> (<os>/<arch>) <commit>/<timestamp>``."""
    return (
        f"eraser/{component}/{BUILD_VERSION} ({OS_NAME}/{ARCH}) "
        f"{VCS_COMMIT}/{BUILD_TIME}"
    )