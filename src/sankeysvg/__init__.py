"""Public API for sankeysvg."""
from .errors import InvalidArgument, InvalidInput, LayoutError, SankeyError
from .options import Configuration, resolve_options
from .sankeysvg import render_sankey

__all__ = [
    "render_sankey",
    "resolve_options",
    "Configuration",
    "SankeyError",
    "InvalidArgument",
    "InvalidInput",
    "LayoutError",
]
