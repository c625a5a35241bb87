"""Tools module initialization."""

from gadget_scout.tools.registry import Tool, ToolRegistry

__all__ = [
    "Tool",
    "ToolRegistry"
]
