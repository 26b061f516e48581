"""Mermaid flowchart exporter for bundled module graphs."""

from typing import List, Optional

from graph.model import ModuleGraph
from .json_exporter import _get_path_str


def to_mermaid(
    graph: ModuleGraph,
    orientation: str = "LR",
    base: Optional[str] = None,
    include_addons: bool = True,
) -> str:
    """
    Convert a bundled module graph to Mermaid flowchart syntax.

    Nodes are named after module identities (m0, m1, ...) and labelled with
    their paths; edges follow the rewritten `require()` calls.

    Args:
        graph: Module graph of a fully processed bundle.
        orientation: Flowchart orientation (LR, TD, TB, RL, BT).
        base: Optional directory that labels are made relative to.
        include_addons: If True, add excluded native add-ons as dashed nodes.

    Returns:
        Mermaid flowchart string.
    """
    stats = graph.stats()
    lines: List[str] = [f"flowchart {orientation}"]

    for module_id, path in enumerate(stats.files):
        lines.append(f'    m{module_id}["{_escape_label(_get_path_str(path, base))}"]')

    for origin, target in graph.edges:
        lines.append(f"    m{origin} --> m{target}")

    if include_addons and stats.addons_excluded:
        seen = []
        for path in stats.addons_excluded:
            if path in seen:
                continue
            seen.append(path)
            node_id = f"addon{len(seen) - 1}"
            lines.append(f'    {node_id}["{_escape_label(_get_path_str(path, base))}"]')
            lines.append(f"    style {node_id} stroke-dasharray: 5 5")

    return "\n".join(lines)


def _escape_label(label: str) -> str:
    """Escape characters that would break a quoted Mermaid label."""
    return label.replace('"', "#quot;")
