"""Information about the pod eraser runs in."""

from __future__ import annotations

import os
from typing import Any

DEFAULT_NAMESPACE = "eraser-system"


def get_namespace() -> str:
    """Return the pod namespace from POD_NAMESPACE, or the default namespace."""
    return os.environ.get("POD_NAMESPACE", DEFAULT_NAMESPACE)


def shared_security_context() -> dict[str, Any]:
    """Return the security context shared by eraser containers."""
    return {
        "capabilities": {"drop": ["ALL"]},
        "readOnlyRootFilesystem": True,
        "seccompProfile": {"type": "RuntimeDefault"},
    }