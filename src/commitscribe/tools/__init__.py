"""
Tool surface of commitscribe: schema-validated operations and review output.
"""

from .registry import Tool, ToolError, ToolRegistry, build_toolset  # noqa: F401
from .review_writer import ReviewPathError, render_review, write_review  # noqa: F401
