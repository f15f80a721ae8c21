from __future__ import annotations

import re
from typing import Any, Iterable

DEFAULT_TITLE = "Peta Pikiran"


def sanitize_text(value: Any, fallback: str = "") -> str:
    # Mermaid mindmap labels break on quotes and angle brackets
    clean = re.sub(r"\s+", " ", "" if value is None else str(value))
    clean = re.sub(r'["<>]', "", clean).strip()
    return clean or fallback


def _get(node: Any, name: str) -> Any:
    if isinstance(node, dict):
        return node.get(name)
    return getattr(node, name, None)


def build_mindmap_chart(nodes: Iterable[Any] | None, title: str = DEFAULT_TITLE) -> str | None:
    """
    Render mind-map nodes as Mermaid `mindmap` source.

    Root is "n1", else "root", else the first node no one points at. The root
    label is replaced by `title`. Children referenced but never defined become
    leaf nodes; nodes unreachable from the root are listed under it.
    """
    nodes = list(nodes or [])
    if not nodes:
        return None

    graph: dict[str, dict[str, Any]] = {}
    for idx, node in enumerate(nodes):
        key = _get(node, "id") or f"node_{idx}"
        children = _get(node, "children") or []
        graph[key] = {
            "label": sanitize_text(_get(node, "label") or _get(node, "title"), f"Node {idx + 1}"),
            "children": [c for c in children if c],
            "note": sanitize_text(_get(node, "note")),
        }

    for node in list(graph.values()):
        for child in node["children"]:
            if child not in graph:
                graph[child] = {"label": sanitize_text(child, "Subtopik"), "children": [], "note": ""}

    referenced = {child for node in graph.values() for child in node["children"]}
    if "n1" in graph:
        root_key = "n1"
    elif "root" in graph:
        root_key = "root"
    else:
        root_key = next((k for k in graph if k not in referenced), next(iter(graph)))

    root = graph[root_key]
    root["label"] = sanitize_text(title, root["label"] or DEFAULT_TITLE)

    lines = ["mindmap"]
    visited: set[str] = set()

    def walk(key: str, depth: int) -> None:
        if key in visited or key not in graph:
            return
        visited.add(key)
        node = graph[key]
        note = f": {node['note']}" if node["note"] else ""
        lines.append(f"{'  ' * depth}{node['label']}{note}")
        for child in node["children"]:
            walk(child, depth + 1)

    walk(root_key, 1)

    for key, node in graph.items():
        if key not in visited:
            lines.append(f"    {node['label']}")

    return "\n".join(lines)
