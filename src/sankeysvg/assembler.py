"""Assemble a positioned graph into a styled SVG element tree.

Paint order is fixed: background, groups, links, nodes, then the document
title, so later elements draw on top of earlier ones.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .accessors import (
    PROCESS_STYLE,
    Palette,
    element_style_class,
    link_color,
    link_title,
    node_title,
    node_value_text,
)
from .builder import DocumentBuilder, fmt
from .layout import PositionedGraph, PositionedGroup, PositionedLink, PositionedNode
from .options import FONT_FAMILY, Configuration
from .textmetrics import TextMeasurer

logger = logging.getLogger(__name__)

LINK_OPACITY = 0.8
LABEL_GAP = 6.0
TITLE_INSET = 10.0
GROUP_LABEL_GAP = 4.0

_TEXT_MEASURER = TextMeasurer()


def assemble_diagram(
    positioned: PositionedGraph,
    config: Configuration,
    builder: DocumentBuilder,
    *,
    palette: Optional[Callable[[Any], str]] = None,
    measurer: Optional[TextMeasurer] = None,
) -> Any:
    """Build the SVG tree for ``positioned`` and return its root element."""
    if palette is None:
        palette = Palette()
    measurer = measurer or _TEXT_MEASURER

    width, height = config.width, config.height
    root = builder.create(
        "svg",
        {
            "width": width,
            "height": height,
            "viewBox": f"0 0 {fmt(width)} {fmt(height)}",
        },
        style={
            "font-family": FONT_FAMILY,
            "font-size": f"{fmt(config.font_size)}px",
        },
    )
    container = builder.add(
        root,
        "g",
        {
            "class": "sankey",
            "transform": f"translate({fmt(config.margins.left)}, {fmt(config.margins.top)})",
        },
    )

    groups_layer = builder.add(container, "g", {"class": "groups"})
    for box in positioned.groups:
        _emit_group(builder, groups_layer, box)

    links_layer = builder.add(container, "g", {"class": "links"})
    for plink in positioned.links:
        _emit_link(builder, links_layer, plink, config, palette)

    nodes_layer = builder.add(container, "g", {"class": "nodes"})
    for pnode in positioned.nodes:
        _emit_node(builder, nodes_layer, pnode, config, measurer)

    title = positioned.graph.title
    if title is not None:
        title_size = 2 * config.font_size
        builder.add(
            root,
            "text",
            {
                "class": "title",
                "x": width - TITLE_INSET,
                "y": TITLE_INSET + title_size,
            },
            style={"text-anchor": "end", "font-size": f"{fmt(title_size)}px"},
            text=title,
        )

    builder.insert(
        root,
        0,
        builder.create("rect", {"width": width, "height": height}, style={"fill": "white"}),
    )

    logger.debug(
        "assembled %d groups, %d links, %d nodes%s",
        len(positioned.groups),
        len(positioned.links),
        len(positioned.nodes),
        " and a title" if title is not None else "",
    )
    return root


def _stroke_style(element: Any) -> Dict[str, str]:
    if element_style_class(element) == PROCESS_STYLE:
        return {"stroke": "#888", "stroke-width": "4px"}
    return {"stroke": "#000", "stroke-width": "1px"}


def _emit_group(builder: DocumentBuilder, parent: Any, box: PositionedGroup) -> None:
    group = builder.add(parent, "g", {"class": "group", "id": f"group-{box.group.id}"})
    builder.add(
        group,
        "rect",
        {
            "x": box.x0,
            "y": box.y0,
            "width": box.x1 - box.x0,
            "height": box.y1 - box.y0,
        },
        style={"fill": "#eee", "stroke": "#bbb", "stroke-width": "0.5"},
    )
    builder.add(
        group,
        "text",
        {"x": box.x0, "y": box.y0 - GROUP_LABEL_GAP},
        style={"fill": "#999"},
        text=box.group.title if box.group.title is not None else box.group.id,
    )


def _emit_link(
    builder: DocumentBuilder,
    parent: Any,
    plink: PositionedLink,
    config: Configuration,
    palette: Callable[[Any], str],
) -> None:
    link = plink.link
    tooltip = link_title(
        link,
        node_title(plink.source.node),
        node_title(plink.target.node),
        config.node_value_format,
    )
    attrs = {"class": "link"}
    if plink.backwards:
        attrs["class"] = "link link-loop"
    group = builder.add(parent, "g", attrs, style={"opacity": LINK_OPACITY})
    path_style = {"fill": link_color(link, palette)}
    path_style.update(_stroke_style(link))
    builder.add(group, "path", {"d": plink.path}, style=path_style)
    builder.add(group, "title", text=tooltip)


def _emit_node(
    builder: DocumentBuilder,
    parent: Any,
    pnode: PositionedNode,
    config: Configuration,
    measurer: TextMeasurer,
) -> None:
    label = node_title(pnode.node)
    group = builder.add(
        parent,
        "g",
        {
            "class": "node",
            "id": f"node-{pnode.id}",
            "transform": f"translate({fmt(pnode.x)}, {fmt(pnode.y0)})",
        },
    )
    builder.add(
        group,
        "line",
        {"x1": 0, "y1": 0, "x2": 0, "y2": pnode.height},
        style=_stroke_style(pnode.node),
    )
    builder.add(group, "title", text=label)

    # Labels sit right of the node unless they would run off the canvas.
    label_width = measurer.measure(label, config.font_size)
    right_edge = config.margins.left + pnode.x + LABEL_GAP + label_width
    flip = right_edge > config.width
    label_x = -LABEL_GAP if flip else LABEL_GAP
    anchor = "end" if flip else "start"
    middle = pnode.height / 2.0
    builder.add(
        group,
        "text",
        {"class": "node-title", "x": label_x, "y": middle, "dy": ".35em"},
        style={"text-anchor": anchor},
        text=label,
    )

    value_text = node_value_text(pnode, config.node_value_format)
    if value_text:
        builder.add(
            group,
            "text",
            {
                "class": "node-value",
                "x": label_x,
                "y": middle + 1.2 * config.font_size,
                "dy": ".35em",
            },
            style={"text-anchor": anchor, "fill": "#666"},
            text=value_text,
        )
