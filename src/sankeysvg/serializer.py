"""Serialize an assembled diagram into a standalone SVG document."""
from __future__ import annotations

from typing import Any

from .builder import DocumentBuilder

XML_DECLARATION = '<?xml version="1.0" standalone="no"?>'
SVG_DOCTYPE = (
    '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" '
    '"http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">'
)
PREAMBLE = XML_DECLARATION + SVG_DOCTYPE


def serialize_document(builder: DocumentBuilder, root: Any) -> str:
    return PREAMBLE + builder.tostring(root)
