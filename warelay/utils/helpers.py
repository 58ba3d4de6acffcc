"""
Runtime utility helpers.

Design principles:
- Centralized path management
- Pure functional utilities
- Predictable IO boundaries
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Final


# ===========================
# Path System
# ===========================

@dataclass(frozen=True, slots=True)
class RuntimePaths:
    """
    Centralized runtime path manager.

    Layout:
        ~/.warelay/config.json
        ~/.warelay/tmp/        scratch space for media transcoding
    """

    root: Path

    @classmethod
    def default(cls) -> "RuntimePaths":
        return cls(root=Path.home() / ".warelay")

    def ensure(self) -> "RuntimePaths":
        self.root.mkdir(parents=True, exist_ok=True)
        self.tmp.mkdir(parents=True, exist_ok=True)
        return self

    @property
    def config_file(self) -> Path:
        return self.root / "config.json"

    @property
    def tmp(self) -> Path:
        return self.root / "tmp"


RUNTIME_PATHS: Final[RuntimePaths] = RuntimePaths.default()


# ===========================
# Clock Utilities
# ===========================

def monotonic() -> float:
    """Monotonic clock in seconds, used for expiry bookkeeping."""
    return time.monotonic()


# ===========================
# String Utilities
# ===========================

def truncate(s: str, max_len: int = 120, suffix: str = "...") -> str:
    """Truncate a string with suffix."""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix


def human_size(num_bytes: int) -> str:
    """Format a byte count as a short human readable string."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


# ===========================
# Directory Helpers
# ===========================

def ensure_dir(path: Path) -> Path:
    """Ensure directory exists."""
    path.mkdir(parents=True, exist_ok=True)
    return path
