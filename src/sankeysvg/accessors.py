"""Pure accessors deriving titles, colors and values from graph records.

Missing optional fields are the normal case and always have a fallback. The
only accessor that raises is ``link_value``, because a link without a usable
number cannot be sized.
"""
from __future__ import annotations

import math
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidInput
from .models import Link, Node

# d3 category20
CATEGORY20 = [
    "#1f77b4", "#aec7e8", "#ff7f0e", "#ffbb78", "#2ca02c",
    "#98df8a", "#d62728", "#ff9896", "#9467bd", "#c5b0d5",
    "#8c564b", "#c49c94", "#e377c2", "#f7b6d2", "#7f7f7f",
    "#c7c7c7", "#bcbd22", "#dbdb8d", "#17becf", "#9edae5",
]

PROCESS_STYLE = "process"


class Palette:
    """Categorical color scale; colors are handed out in first-request order.

    Create one per render so the assignment only depends on that render's
    links.
    """

    def __init__(self, colors: Optional[List[str]] = None) -> None:
        self._colors = list(colors or CATEGORY20)
        self._assigned: Dict[Any, str] = {}

    def __call__(self, key: Any) -> str:
        if key not in self._assigned:
            self._assigned[key] = self._colors[len(self._assigned) % len(self._colors)]
        return self._assigned[key]


def node_title(node: Node) -> str:
    title = node.title
    if isinstance(title, dict):
        label = title.get("label")
        if label is not None:
            return str(label)
    elif title is not None:
        return str(title)
    return node.id


def link_type_title(link: Link) -> Optional[str]:
    if link.title is not None:
        return link.title
    return link.type


def link_color(link: Link, palette: Callable[[Any], str]) -> str:
    if link.color:
        return str(link.color)
    if isinstance(link.style, dict) and link.style.get("color"):
        return str(link.style["color"])
    return palette(link.type)


def link_value(link: Link) -> float:
    value = link.value
    if value is None:
        raise InvalidInput(f'link {link.source} -> {link.target} is missing "value"')
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(
            f'link {link.source} -> {link.target} has a non-numeric value {value!r}'
        )
    try:
        number = float(value)
    except OverflowError as exc:
        raise InvalidInput(
            f"link {link.source} -> {link.target} value is too large to represent"
        ) from exc
    if not math.isfinite(number) or number < 0:
        raise InvalidInput(
            f'link {link.source} -> {link.target} value must be a finite number >= 0 (got {value!r})'
        )
    return number


def format_value(value: float) -> str:
    return f"{value:.3g}"


def link_title(
    link: Link,
    source_title: str,
    target_title: str,
    value_format: Optional[Callable[[float], str]] = None,
) -> str:
    lines = [f"{source_title} → {target_title}"]
    type_title = link_type_title(link)
    if type_title:
        lines.append(type_title)
    lines.append((value_format or format_value)(link_value(link)))
    return "\n".join(lines)


def element_style_class(element: Any) -> Optional[str]:
    """Return the ``style`` class carried by a node or link, if any."""
    if isinstance(element, Link):
        style = element.style
    elif isinstance(element, Node):
        style = element.data.get("style")
    else:
        style = getattr(element, "style", None)
    if isinstance(style, dict):
        style = style.get("class")
    if style is None:
        return None
    return str(style)


def node_value_text(node: Any, format_fn: Optional[Callable[[float], str]]) -> str:
    if format_fn is None:
        return ""
    value = getattr(node, "value", None)
    if value is None:
        return ""
    return format_fn(value)
