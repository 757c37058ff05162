"""Flow-graph JSON to Sankey SVG rendering pipeline."""
from __future__ import annotations

import logging
from typing import Any, Optional, Union

from .accessors import Palette
from .assembler import assemble_diagram
from .builder import DocumentBuilder, ElementTreeBuilder
from .layout import LayoutEngine, layout_graph
from .models import Graph, load_graph
from .options import Configuration, resolve_options
from .serializer import serialize_document

logger = logging.getLogger(__name__)


def render_sankey(
    graph: Union[Graph, Any],
    config: Optional[Configuration] = None,
    *,
    engine: Optional[LayoutEngine] = None,
    builder: Optional[DocumentBuilder] = None,
) -> str:
    """Render a graph (a ``Graph`` or its parsed JSON) to an SVG document string.

    Every stage runs to completion before the next one starts, so any error
    aborts the render without producing partial output.
    """
    if not isinstance(graph, Graph):
        graph = load_graph(graph)
    if config is None:
        config = resolve_options()
    if builder is None:
        builder = ElementTreeBuilder()

    logger.debug("rendering %d nodes and %d links", len(graph.nodes), len(graph.links))
    positioned = layout_graph(graph, config, engine)
    root = assemble_diagram(positioned, config, builder, palette=Palette())
    return serialize_document(builder, root)


__all__ = ["render_sankey"]
