"""JSON exporter for bundle statistics (machine-friendly format)."""

import json
import os
from typing import Any, Dict, List, Optional

from graph.model import ModuleGraph


def to_json(
    graph: ModuleGraph,
    base: Optional[str] = None,
    indent: int = 2,
    include_edges: bool = True,
) -> str:
    """
    Convert the stats of a completed bundle to JSON.

    Args:
        graph: Module graph of a fully processed bundle.
        base: If given, paths are shown relative to this directory.
        indent: JSON indentation level.
        include_edges: If True, add the (origin, target) identity pairs.

    Returns:
        JSON string with "files", "addonsExcluded", "skipped" and optionally
        "edges".

    Raises:
        StatsNotReadyError: If the bundle has not been fully processed.
    """
    stats = graph.stats()

    files: List[Dict[str, Any]] = [
        {"id": module_id, "path": _get_path_str(path, base)}
        for module_id, path in enumerate(stats.files)
    ]

    data: Dict[str, Any] = {
        "files": files,
        "addonsExcluded": [_get_path_str(path, base) for path in stats.addons_excluded],
        "skipped": [
            {"path": _get_path_str(record.path, base), "inclusion": record.inclusion.value}
            for record in graph.skipped
        ],
    }

    if include_edges:
        data["edges"] = [
            {"source": origin, "target": target} for origin, target in graph.edges
        ]

    return json.dumps(data, indent=indent)


def _get_path_str(path: str, base: Optional[str]) -> str:
    """Get the string representation of a path."""
    if base is None:
        return path.replace("\\", "/")
    try:
        return os.path.relpath(path, base).replace("\\", "/")
    except ValueError:
        return path.replace("\\", "/")
