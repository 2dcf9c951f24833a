"""Foundation - Core building blocks for toolweave.

Contains: error handling, JSON aliases, config.
"""

from __future__ import annotations

from .config import ToolweaveSettings, clear_settings_cache, get_settings
from .errors import ErrorCode, ToolError, ToolweaveError

__all__ = [
    "ErrorCode", "ToolError", "ToolweaveError",
    "ToolweaveSettings", "get_settings", "clear_settings_cache",
]
