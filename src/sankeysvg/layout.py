"""Layout adapter and the default layered Sankey layout engine."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .accessors import link_value
from .builder import fmt
from .errors import InvalidInput, LayoutError
from .models import Graph, Group, Link, Node
from .options import Configuration

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float, float, float]


@dataclass
class RankSet:
    type: str
    nodes: List[str]


@dataclass
class LayoutRequest:
    size: Tuple[float, float]
    ordering: Optional[List[List[str]]] = None
    rank_sets: List[RankSet] = field(default_factory=list)
    link_value: Callable[[Link], float] = link_value
    node_position: Optional[Callable[[Node], Tuple[float, float]]] = None
    scale: Optional[float] = None


@dataclass
class PositionedNode:
    node: Node
    x: float
    y0: float
    y1: float
    value: float
    rank: int

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def height(self) -> float:
        return self.y1 - self.y0


@dataclass
class PositionedLink:
    link: Link
    source: PositionedNode
    target: PositionedNode
    value: float
    width: float
    y0: float
    y1: float
    path: str
    backwards: bool = False


@dataclass
class PositionedGroup:
    group: Group
    x0: float
    y0: float
    x1: float
    y1: float


@dataclass
class PositionedGraph:
    graph: Graph
    nodes: List[PositionedNode]
    links: List[PositionedLink]
    groups: List[PositionedGroup]
    bounds: Bounds

    def node(self, node_id: str) -> PositionedNode:
        for positioned in self.nodes:
            if positioned.id == node_id:
                return positioned
        raise KeyError(node_id)


class LayoutEngine(ABC):
    """Assigns coordinates, link widths and group boxes to a graph."""

    @abstractmethod
    def layout(self, graph: Graph, request: LayoutRequest) -> PositionedGraph:
        pass


def layout_graph(
    graph: Graph, config: Configuration, engine: Optional[LayoutEngine] = None
) -> PositionedGraph:
    """Translate the resolved configuration into a layout request and run it."""
    request = LayoutRequest(
        size=config.inner_size,
        ordering=_resolve_ordering(graph),
        rank_sets=_resolve_rank_sets(graph.rank_sets),
        link_value=link_value,
    )
    if config.position is not None:
        request.node_position = _attribute_position(config.position.x_attr, config.position.y_attr)
        request.scale = config.scale

    engine = engine or SankeyLayout()
    positioned = engine.layout(graph, request)
    logger.debug(
        "layout placed %d nodes, %d links, %d groups within %s",
        len(positioned.nodes),
        len(positioned.links),
        len(positioned.groups),
        positioned.bounds,
    )
    return positioned


def _resolve_ordering(graph: Graph) -> Optional[List[List[str]]]:
    # An empty order places nothing, so it defers like an absent one.
    layers = graph.order or graph.layers
    if not layers:
        return None
    ordering: List[List[str]] = []
    for layer in layers:
        if isinstance(layer, list):
            ordering.append([str(node_id) for node_id in _flatten_bands(layer)])
        elif isinstance(layer, (str, int)) and not isinstance(layer, bool):
            ordering.append([str(layer)])
        else:
            raise InvalidInput(f"ordering layer must be a list of node ids (got {layer!r})")
    return ordering


def _flatten_bands(layer: Sequence[Any]) -> List[Any]:
    flat: List[Any] = []
    for item in layer:
        if isinstance(item, list):
            flat.extend(_flatten_bands(item))
        else:
            flat.append(item)
    return flat


def _resolve_rank_sets(raw: Any) -> List[RankSet]:
    if raw is None:
        return []
    entries = list(raw.values()) if isinstance(raw, dict) else list(raw)
    rank_sets: List[RankSet] = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("nodes"), list):
            raise InvalidInput(f'rank set must be an object with a "nodes" list (got {entry!r})')
        kind = str(entry.get("type", "same")).strip().lower()
        if kind not in {"same", "min"}:
            raise InvalidInput(f'rank set type must be "same" or "min" (got {entry.get("type")!r})')
        rank_sets.append(RankSet(type=kind, nodes=[str(n) for n in entry["nodes"]]))
    return rank_sets


def _attribute_position(x_attr: str, y_attr: str) -> Callable[[Node], Tuple[float, float]]:
    def _position(node: Node) -> Tuple[float, float]:
        coords = []
        for attr in (x_attr, y_attr):
            raw = node.data.get(attr)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
                raise LayoutError(
                    f'node "{node.id}" attribute "{attr}" must be a finite number for manual positions (got {raw!r})'
                )
            coords.append(float(raw))
        return coords[0], coords[1]

    return _position


class SankeyLayout(LayoutEngine):
    """Layered layout: ranks flow left to right, node height tracks value."""

    def __init__(
        self,
        node_padding: float = 10.0,
        group_padding: float = 10.0,
        loop_offset: float = 15.0,
    ) -> None:
        self.node_padding = node_padding
        self.group_padding = group_padding
        self.loop_offset = loop_offset

    def layout(self, graph: Graph, request: LayoutRequest) -> PositionedGraph:
        width, height = request.size
        node_ids = [node.id for node in graph.nodes]
        node_by_id = {node.id: node for node in graph.nodes}

        for link in graph.links:
            for attr in ("source", "target"):
                ref = getattr(link, attr)
                if ref not in node_by_id:
                    raise LayoutError(f'link {attr} "{ref}" references an unknown node id')
        values = [request.link_value(link) for link in graph.links]

        inflow: Dict[str, float] = {node_id: 0.0 for node_id in node_ids}
        outflow: Dict[str, float] = {node_id: 0.0 for node_id in node_ids}
        for link, value in zip(graph.links, values):
            outflow[link.source] += value
            inflow[link.target] += value
        node_value = {node_id: max(inflow[node_id], outflow[node_id]) for node_id in node_ids}

        if request.ordering is not None:
            layers = self._layers_from_ordering(request.ordering, node_by_id)
        else:
            ranks = self._compute_ranks(node_ids, graph.links, request.rank_sets, node_by_id)
            layers = self._order_layers(node_ids, graph.links, ranks)
        rank_of = {node_id: r for r, layer in enumerate(layers) for node_id in layer}

        padding = self.node_padding
        longest = max((len(layer) for layer in layers), default=0)
        if longest > 1:
            padding = min(padding, height / (2.0 * (longest - 1)))
        ky = math.inf
        for layer in layers:
            total = sum(node_value[n] for n in layer)
            if total > 0:
                ky = min(ky, (height - padding * (len(layer) - 1)) / total)
        if math.isinf(ky):
            ky = 0.0

        positioned: Dict[str, PositionedNode] = {}
        if request.node_position is not None:
            scale = request.scale if request.scale is not None else 1.0
            for node_id in node_ids:
                px, py = request.node_position(node_by_id[node_id])
                y0 = py * scale
                positioned[node_id] = PositionedNode(
                    node=node_by_id[node_id],
                    x=px * scale,
                    y0=y0,
                    y1=y0 + node_value[node_id] * ky,
                    value=node_value[node_id],
                    rank=rank_of[node_id],
                )
        else:
            max_rank = len(layers) - 1
            for r, layer in enumerate(layers):
                x = width * r / max_rank if max_rank > 0 else 0.0
                span = sum(node_value[n] * ky for n in layer) + padding * max(len(layer) - 1, 0)
                cursor = max((height - span) / 2.0, 0.0)
                for node_id in layer:
                    node_height = node_value[node_id] * ky
                    positioned[node_id] = PositionedNode(
                        node=node_by_id[node_id],
                        x=x,
                        y0=cursor,
                        y1=cursor + node_height,
                        value=node_value[node_id],
                        rank=r,
                    )
                    cursor += node_height + padding

        links = self._position_links(graph.links, values, positioned, ky)
        groups = self._position_groups(graph.groups, positioned)

        bounds: Bounds = (0.0, 0.0, width, height)
        for node in positioned.values():
            bounds = _merge_bbox(bounds, (node.x, node.y0, node.x, node.y1))
        for plink in links:
            if plink.backwards:
                bounds = _merge_bbox(bounds, _loop_bounds(plink, self.loop_offset))
        for box in groups:
            bounds = _merge_bbox(bounds, (box.x0, box.y0, box.x1, box.y1))

        return PositionedGraph(
            graph=graph,
            nodes=[positioned[node_id] for node_id in node_ids],
            links=links,
            groups=groups,
            bounds=bounds,
        )

    def _layers_from_ordering(
        self, ordering: List[List[str]], node_by_id: Dict[str, Node]
    ) -> List[List[str]]:
        seen: Set[str] = set()
        for layer in ordering:
            for node_id in layer:
                if node_id not in node_by_id:
                    raise LayoutError(f'ordering references unknown node id "{node_id}"')
                if node_id in seen:
                    raise LayoutError(f'ordering places node "{node_id}" more than once')
                seen.add(node_id)
        missing = [node_id for node_id in node_by_id if node_id not in seen]
        if missing:
            raise LayoutError(
                "ordering does not place nodes: " + ", ".join(f'"{n}"' for n in missing)
            )
        return [list(layer) for layer in ordering]

    def _compute_ranks(
        self,
        node_ids: List[str],
        links: List[Link],
        rank_sets: List[RankSet],
        node_by_id: Dict[str, Node],
    ) -> Dict[str, int]:
        rep = {node_id: node_id for node_id in node_ids}
        for rank_set in rank_sets:
            for node_id in rank_set.nodes:
                if node_id not in node_by_id:
                    raise LayoutError(f'rank set references unknown node id "{node_id}"')
            if rank_set.type != "same" or not rank_set.nodes:
                continue
            target = rep[rank_set.nodes[0]]
            merged = {rep[node_id] for node_id in rank_set.nodes}
            for node_id in node_ids:
                if rep[node_id] in merged:
                    rep[node_id] = target

        reps = [node_id for node_id in node_ids if rep[node_id] == node_id]
        edges = [
            (rep[link.source], rep[link.target])
            for link in links
            if rep[link.source] != rep[link.target]
        ]
        rep_rank = _longest_path_ranks(reps, edges)
        ranks = {node_id: rep_rank[rep[node_id]] for node_id in node_ids}

        for rank_set in rank_sets:
            if rank_set.type == "min":
                for node_id in rank_set.nodes:
                    ranks[node_id] = 0

        compact = {r: idx for idx, r in enumerate(sorted(set(ranks.values())))}
        return {node_id: compact[r] for node_id, r in ranks.items()}

    def _order_layers(
        self, node_ids: List[str], links: List[Link], ranks: Dict[str, int]
    ) -> List[List[str]]:
        order_index = {node_id: idx for idx, node_id in enumerate(node_ids)}
        rank_to_nodes: Dict[int, List[str]] = {}
        for node_id in node_ids:
            rank_to_nodes.setdefault(ranks[node_id], []).append(node_id)

        max_rank = max(rank_to_nodes.keys(), default=-1)
        position: Dict[str, int] = {
            node_id: idx for idx, node_id in enumerate(rank_to_nodes.get(0, []))
        }
        for r in range(1, max_rank + 1):
            members = rank_to_nodes.get(r, [])
            medians: Dict[str, float] = {}
            for node_id in members:
                preds = sorted(
                    position[link.source]
                    for link in links
                    if link.target == node_id and ranks[link.source] < r
                )
                if not preds:
                    medians[node_id] = float("inf")
                    continue
                mid = len(preds) // 2
                if len(preds) % 2 == 1:
                    medians[node_id] = float(preds[mid])
                else:
                    medians[node_id] = 0.5 * (preds[mid - 1] + preds[mid])
            members = sorted(members, key=lambda n: (medians[n], order_index[n]))
            rank_to_nodes[r] = members
            for idx, node_id in enumerate(members):
                position[node_id] = idx

        return [rank_to_nodes.get(r, []) for r in range(0, max_rank + 1)]

    def _position_links(
        self,
        links: List[Link],
        values: List[float],
        nodes: Dict[str, PositionedNode],
        ky: float,
    ) -> List[PositionedLink]:
        entries: List[PositionedLink] = []
        for link, value in zip(links, values):
            source = nodes[link.source]
            target = nodes[link.target]
            entries.append(
                PositionedLink(
                    link=link,
                    source=source,
                    target=target,
                    value=value,
                    width=value * ky,
                    y0=0.0,
                    y1=0.0,
                    path="",
                    backwards=target.x <= source.x,
                )
            )

        def _center(node: PositionedNode) -> float:
            return (node.y0 + node.y1) / 2.0

        outgoing: Dict[str, List[int]] = {}
        incoming: Dict[str, List[int]] = {}
        for idx, entry in enumerate(entries):
            outgoing.setdefault(entry.source.id, []).append(idx)
            incoming.setdefault(entry.target.id, []).append(idx)

        for node_id, indices in outgoing.items():
            indices.sort(key=lambda i: (entries[i].backwards, _center(entries[i].target), i))
            cursor = nodes[node_id].y0
            for i in indices:
                entries[i].y0 = cursor + entries[i].width / 2.0
                cursor += entries[i].width
        for node_id, indices in incoming.items():
            indices.sort(key=lambda i: (entries[i].backwards, _center(entries[i].source), i))
            cursor = nodes[node_id].y0
            for i in indices:
                entries[i].y1 = cursor + entries[i].width / 2.0
                cursor += entries[i].width

        for entry in entries:
            if entry.backwards:
                entry.path = _loop_path(entry, self.loop_offset)
            else:
                entry.path = _ribbon_path(entry)
        return entries

    def _position_groups(
        self, groups: List[Group], nodes: Dict[str, PositionedNode]
    ) -> List[PositionedGroup]:
        boxes: List[PositionedGroup] = []
        pad = self.group_padding
        for group in groups:
            members = []
            for node_id in group.nodes:
                if node_id not in nodes:
                    raise LayoutError(f'group "{group.id}" references unknown node id "{node_id}"')
                members.append(nodes[node_id])
            if not members:
                logger.debug('group "%s" has no members; skipping', group.id)
                continue
            boxes.append(
                PositionedGroup(
                    group=group,
                    x0=min(n.x for n in members) - pad,
                    y0=min(n.y0 for n in members) - pad,
                    x1=max(n.x for n in members) + pad,
                    y1=max(n.y1 for n in members) + pad,
                )
            )
        return boxes


def _longest_path_ranks(node_order: List[str], edges: List[Tuple[str, str]]) -> Dict[str, int]:
    outgoing: Dict[str, List[int]] = {node_id: [] for node_id in node_order}
    for idx, (u, _v) in enumerate(edges):
        outgoing[u].append(idx)

    reversed_edges: Set[int] = set()
    state: Dict[str, int] = {node_id: 0 for node_id in node_order}

    # Explicit stack: chains may be longer than the recursion limit.
    for start in node_order:
        if state[start] != 0:
            continue
        state[start] = 1
        stack: List[Tuple[str, Iterator[int]]] = [(start, iter(outgoing[start]))]
        while stack:
            node_id, pending = stack[-1]
            edge_idx = next(pending, None)
            if edge_idx is None:
                state[node_id] = 2
                stack.pop()
                continue
            target = edges[edge_idx][1]
            if state[target] == 0:
                state[target] = 1
                stack.append((target, iter(outgoing[target])))
            elif state[target] == 1:
                reversed_edges.add(edge_idx)

    # Back edges are dropped rather than flipped so cycles render as loops.
    dag_outgoing: Dict[str, List[str]] = {node_id: [] for node_id in node_order}
    indegree: Dict[str, int] = {node_id: 0 for node_id in node_order}
    for idx, (u, v) in enumerate(edges):
        if idx in reversed_edges:
            continue
        dag_outgoing[u].append(v)
        indegree[v] += 1

    queue: List[str] = [node_id for node_id in node_order if indegree[node_id] == 0]
    topo: List[str] = []
    cursor = 0
    while cursor < len(queue):
        u = queue[cursor]
        cursor += 1
        topo.append(u)
        for v in dag_outgoing[u]:
            indegree[v] -= 1
            if indegree[v] == 0:
                queue.append(v)
    if len(topo) != len(node_order):
        raise LayoutError("could not break cycles in the link graph")

    rank: Dict[str, int] = {node_id: 0 for node_id in node_order}
    for u in topo:
        for v in dag_outgoing[u]:
            if rank[v] < rank[u] + 1:
                rank[v] = rank[u] + 1
    return rank


def _ribbon_path(entry: PositionedLink) -> str:
    x0 = entry.source.x
    x1 = entry.target.x
    xm = (x0 + x1) / 2.0
    half = entry.width / 2.0
    s_top, s_bot = entry.y0 - half, entry.y0 + half
    t_top, t_bot = entry.y1 - half, entry.y1 + half
    return (
        f"M {fmt(x0)} {fmt(s_top)} "
        f"C {fmt(xm)} {fmt(s_top)} {fmt(xm)} {fmt(t_top)} {fmt(x1)} {fmt(t_top)} "
        f"L {fmt(x1)} {fmt(t_bot)} "
        f"C {fmt(xm)} {fmt(t_bot)} {fmt(xm)} {fmt(s_bot)} {fmt(x0)} {fmt(s_bot)} Z"
    )


def _loop_geometry(entry: PositionedLink, loop_offset: float) -> Tuple[float, float, float, float]:
    half = entry.width / 2.0
    radius = loop_offset + half
    bottom = max(entry.source.y1, entry.target.y1) + radius
    return entry.source.x + radius, entry.target.x - radius, bottom, half


def _loop_path(entry: PositionedLink, loop_offset: float) -> str:
    right, left, bottom, half = _loop_geometry(entry, loop_offset)
    x0 = entry.source.x
    x1 = entry.target.x
    points = [
        (x0, entry.y0 - half),
        (right + half, entry.y0 - half),
        (right + half, bottom + half),
        (left - half, bottom + half),
        (left - half, entry.y1 - half),
        (x1, entry.y1 - half),
        (x1, entry.y1 + half),
        (left + half, entry.y1 + half),
        (left + half, bottom - half),
        (right - half, bottom - half),
        (right - half, entry.y0 + half),
        (x0, entry.y0 + half),
    ]
    parts = [f"M {fmt(points[0][0])} {fmt(points[0][1])}"]
    for x, y in points[1:]:
        parts.append(f"L {fmt(x)} {fmt(y)}")
    parts.append("Z")
    return " ".join(parts)


def _loop_bounds(entry: PositionedLink, loop_offset: float) -> Bounds:
    right, left, bottom, half = _loop_geometry(entry, loop_offset)
    return (left - half, min(entry.y0, entry.y1) - half, right + half, bottom + half)


def _merge_bbox(current: Bounds, new: Bounds) -> Bounds:
    return (
        min(current[0], new[0]),
        min(current[1], new[1]),
        max(current[2], new[2]),
        max(current[3], new[3]),
    )
