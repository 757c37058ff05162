"""Error taxonomy shared by the render pipeline and the CLI."""
from __future__ import annotations


class SankeyError(Exception):
    """Base error with a stable code for CLI mapping."""

    code = "E_SANKEY"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidArgument(SankeyError, ValueError):
    """Raised when a rendering option cannot be parsed."""

    code = "E_ARGS"


class InvalidInput(SankeyError, ValueError):
    """Raised when the graph JSON is structurally invalid or inconsistent."""

    code = "E_INPUT"


class LayoutError(SankeyError):
    """Raised when the layout engine cannot place the graph."""

    code = "E_LAYOUT"
