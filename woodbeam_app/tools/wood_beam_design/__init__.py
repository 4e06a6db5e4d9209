"""Wood beam design tool plugin.

Exports:
  - TOOL: an instance of WoodBeamDesignTool
"""
from __future__ import annotations

from .tool import TOOL

__all__ = ["TOOL"]
