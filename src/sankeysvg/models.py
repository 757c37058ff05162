"""Typed records for the flow-graph JSON document."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import InvalidInput

_NODE_KEYS = {"id", "title", "data"}
_LINK_KEYS = {"source", "target", "type", "value", "title", "color", "style"}


@dataclass
class Node:
    id: str
    title: Any = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Link:
    source: str
    target: str
    value: Any = None
    type: Optional[str] = None
    title: Optional[str] = None
    color: Optional[str] = None
    style: Any = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Group:
    id: str
    nodes: List[str]
    title: Optional[str] = None


@dataclass
class Graph:
    nodes: List[Node]
    links: List[Link]
    groups: List[Group] = field(default_factory=list)
    order: Optional[List[Any]] = None
    rank_sets: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        value = self.metadata.get("title")
        if value is None or value == "":
            return None
        return str(value)

    @property
    def layers(self) -> Optional[List[Any]]:
        return self.metadata.get("layers")


def load_graph(payload: Any) -> Graph:
    """Build a ``Graph`` from a parsed JSON document.

    Only structure is checked here: node identity, required link endpoints and
    the shape of title objects. Link values and node references are validated
    later by the accessors and the layout engine.
    """
    if not isinstance(payload, dict):
        raise InvalidInput("graph document must be a JSON object")

    raw_nodes = _require_list(payload, "nodes", "graph")
    raw_links = _require_list(payload, "links", "graph")

    nodes: List[Node] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_nodes):
        node = _load_node(raw, idx)
        if node.id in seen:
            raise InvalidInput(f'duplicate node id "{node.id}"')
        seen.add(node.id)
        nodes.append(node)

    links = [_load_link(raw, idx) for idx, raw in enumerate(raw_links)]

    groups: List[Group] = []
    if payload.get("groups") is not None:
        for idx, raw in enumerate(_require_list(payload, "groups", "graph")):
            groups.append(_load_group(raw, idx))

    order = payload.get("order")
    if order is not None and not isinstance(order, list):
        raise InvalidInput('"order" must be a list of layers')

    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise InvalidInput('"metadata" must be a JSON object')
    layers = metadata.get("layers")
    if layers is not None and not isinstance(layers, list):
        raise InvalidInput('"metadata.layers" must be a list of layers')

    rank_sets = payload.get("rankSets")
    if rank_sets is not None and not isinstance(rank_sets, (list, dict)):
        raise InvalidInput('"rankSets" must be a list or an object')

    return Graph(
        nodes=nodes,
        links=links,
        groups=groups,
        order=order,
        rank_sets=rank_sets,
        metadata=dict(metadata),
    )


def _require_list(payload: Dict[str, Any], key: str, where: str) -> List[Any]:
    value = payload.get(key)
    if not isinstance(value, list):
        raise InvalidInput(f'{where} field "{key}" must be a list')
    return value


def _node_ref(value: Any, what: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InvalidInput(f"{what} must be a string or number (got {value!r})")
    return str(value)


def _check_title(title: Any, what: str) -> None:
    if title is None or isinstance(title, (str, int, float)):
        return
    if isinstance(title, dict) and isinstance(title.get("label"), (str, int, float)):
        return
    raise InvalidInput(f"{what} title must be a string or an object with a label (got {title!r})")


def _title_text(title: Any, what: str) -> Optional[str]:
    _check_title(title, what)
    if isinstance(title, dict):
        return str(title["label"])
    return None if title is None else str(title)


def _load_node(raw: Any, idx: int) -> Node:
    if not isinstance(raw, dict):
        raise InvalidInput(f"node #{idx} must be a JSON object")
    if "id" not in raw:
        raise InvalidInput(f'node #{idx} is missing "id"')
    node_id = _node_ref(raw["id"], f"node #{idx} id")
    title = raw.get("title")
    _check_title(title, f'node "{node_id}"')

    explicit = raw.get("data")
    if explicit is not None and not isinstance(explicit, dict):
        raise InvalidInput(f'node "{node_id}" data must be a JSON object')
    data = {k: v for k, v in raw.items() if k not in _NODE_KEYS}
    if explicit:
        data.update(explicit)
    return Node(id=node_id, title=title, data=data)


def _load_link(raw: Any, idx: int) -> Link:
    if not isinstance(raw, dict):
        raise InvalidInput(f"link #{idx} must be a JSON object")
    for key in ("source", "target"):
        if key not in raw:
            raise InvalidInput(f'link #{idx} is missing "{key}"')
    style = raw.get("style")
    if style is not None and not isinstance(style, (str, dict)):
        raise InvalidInput(f"link #{idx} style must be a string or an object")
    link_type = raw.get("type")
    title = raw.get("title")
    return Link(
        source=_node_ref(raw["source"], f"link #{idx} source"),
        target=_node_ref(raw["target"], f"link #{idx} target"),
        value=raw.get("value"),
        type=None if link_type is None else str(link_type),
        title=_title_text(title, f"link #{idx}"),
        color=raw.get("color"),
        style=style,
        data={k: v for k, v in raw.items() if k not in _LINK_KEYS},
    )


def _load_group(raw: Any, idx: int) -> Group:
    if not isinstance(raw, dict):
        raise InvalidInput(f"group #{idx} must be a JSON object")
    members = raw.get("nodes")
    if not isinstance(members, list):
        raise InvalidInput(f'group #{idx} field "nodes" must be a list')
    group_id = _node_ref(raw.get("id", f"group-{idx}"), f"group #{idx} id")
    title = raw.get("title")
    return Group(
        id=group_id,
        nodes=[_node_ref(member, f'group "{group_id}" member') for member in members],
        title=_title_text(title, f'group "{group_id}"'),
    )
