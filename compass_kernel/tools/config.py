"""Configuration helpers for the custom tool builder and replay."""

from __future__ import annotations

import copy

from .model import ToolConfig

_TOOL_CONFIG = ToolConfig()


def get_tool_config() -> ToolConfig:
    return copy.deepcopy(_TOOL_CONFIG)


def set_tool_config(config: ToolConfig) -> None:
    global _TOOL_CONFIG
    _TOOL_CONFIG = copy.deepcopy(config)
