"""
Estimator versioning utilities.

- __version__: semantic base version for the retarget package
- build_meta(): PEP 440 version with local metadata when a build describe is injected
"""

from __future__ import annotations

import os
import re
from typing import Dict, Optional

# Bump when estimator output for the same inputs changes.
__version__ = "0.1.0"

_PEP440_LOCAL_SAFE = re.compile(r"[^0-9A-Za-z]+")


def _pep440_local(s: str) -> str:
    """
    Convert an arbitrary string into a PEP 440 local version segment.
    Example: 'v0.1.0-23-gabc1234-dirty' -> 'v0_1_0_23_gabc1234_dirty'
    """
    return _PEP440_LOCAL_SAFE.sub("_", s.strip()).strip("_")


def git_describe() -> Optional[str]:
    """Build description injected by CI (RETARGET_GIT_DESCRIBE), if any."""
    value = os.getenv("RETARGET_GIT_DESCRIBE", "").strip()
    return value or None


def build_meta() -> str:
    """
    Version string for logs and diagnostics.

    RETARGET_VERSION replaces the base version outright; otherwise the
    injected describe string, when present, is appended as local metadata.
    """
    override = os.getenv("RETARGET_VERSION", "").strip()
    if override:
        return override
    desc = git_describe()
    if not desc:
        return __version__
    return f"{__version__}+{_pep440_local(desc)}"


def version_info() -> Dict[str, str]:
    info = {"module": "retarget", "version": __version__, "build": build_meta()}
    desc = git_describe()
    if desc:
        info["git"] = desc
    return info


__all__ = ["__version__", "build_meta", "git_describe", "version_info"]
