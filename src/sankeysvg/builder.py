"""Document construction seam: an abstract builder and the ElementTree one."""
from __future__ import annotations

import math
import re
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

# Characters outside the XML 1.0 Char production, lone surrogates included.
_XML_INVALID = re.compile("[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")

Attrs = Mapping[str, Any]


class DocumentBuilder(ABC):
    """Builds a tree of elements carrying attributes and inline styles."""

    @abstractmethod
    def create(
        self,
        tag: str,
        attrs: Optional[Attrs] = None,
        style: Optional[Attrs] = None,
        text: Optional[str] = None,
    ) -> Any:
        pass

    @abstractmethod
    def append(self, parent: Any, child: Any) -> None:
        pass

    @abstractmethod
    def insert(self, parent: Any, index: int, child: Any) -> None:
        pass

    @abstractmethod
    def tostring(self, root: Any) -> str:
        pass

    def add(
        self,
        parent: Any,
        tag: str,
        attrs: Optional[Attrs] = None,
        style: Optional[Attrs] = None,
        text: Optional[str] = None,
    ) -> Any:
        child = self.create(tag, attrs, style, text)
        self.append(parent, child)
        return child


class ElementTreeBuilder(DocumentBuilder):
    def create(
        self,
        tag: str,
        attrs: Optional[Attrs] = None,
        style: Optional[Attrs] = None,
        text: Optional[str] = None,
    ) -> ET.Element:
        elem = ET.Element(_q(tag), {key: attr_value(value) for key, value in (attrs or {}).items()})
        if style:
            elem.set("style", style_text(style))
        if text is not None:
            elem.text = xml_text(text)
        return elem

    def append(self, parent: ET.Element, child: ET.Element) -> None:
        parent.append(child)

    def insert(self, parent: ET.Element, index: int, child: ET.Element) -> None:
        parent.insert(index, child)

    def tostring(self, root: ET.Element) -> str:
        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="unicode")


def style_text(style: Attrs) -> str:
    return "; ".join(f"{key}: {attr_value(value)}" for key, value in style.items())


def attr_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return fmt(value)
    return xml_text(str(value))


def xml_text(text: str) -> str:
    """Drop characters an XML 1.0 document cannot carry, even escaped."""
    return _XML_INVALID.sub("", text)


def fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


__all__ = ["DocumentBuilder", "ElementTreeBuilder", "SVG_NS", "attr_value", "fmt", "style_text", "xml_text"]
