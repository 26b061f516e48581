"""ASCII tree-style exporter for bundled module graphs."""

from typing import List, Optional, Set, Tuple

from graph.model import ModuleGraph
from .json_exporter import _get_path_str


# Unicode tree characters
UNICODE_BRANCH = "├── "
UNICODE_LAST = "└── "
UNICODE_VERTICAL = "│   "
UNICODE_SPACE = "    "

# ASCII fallback characters
ASCII_BRANCH = "|-- "
ASCII_LAST = "\\-- "
ASCII_VERTICAL = "|   "
ASCII_SPACE = "    "


def to_ascii(
    graph: ModuleGraph,
    base: Optional[str] = None,
    style: str = "tree",
    include_addons: bool = True,
) -> str:
    """
    Render the bundled modules as a dependency tree rooted at the entry.

    Each line shows the module identity and its path. A module already shown
    on the current branch is marked with [*] and not expanded again.

    Args:
        graph: Module graph of a fully processed bundle.
        base: Optional directory that displayed paths are made relative to.
        style: Output style - "tree" (Unicode) or "ascii" (pure ASCII).
        include_addons: If True, list excluded native add-ons after the tree.

    Returns:
        ASCII tree string.
    """
    stats = graph.stats()

    if style == "ascii":
        chars = (ASCII_BRANCH, ASCII_LAST, ASCII_VERTICAL, ASCII_SPACE)
    else:
        chars = (UNICODE_BRANCH, UNICODE_LAST, UNICODE_VERTICAL, UNICODE_SPACE)

    lines: List[str] = []
    _render_node(graph, 0, stats.files, base, "", True, chars, set(), lines, is_root=True)

    if include_addons and stats.addons_excluded:
        lines.append("")
        lines.append("Native add-ons excluded:")
        branch, last = chars[0], chars[1]
        for i, path in enumerate(stats.addons_excluded):
            connector = last if i == len(stats.addons_excluded) - 1 else branch
            lines.append(f"{connector}{_get_path_str(path, base)} [NATIVE]")

    return "\n".join(lines)


def _render_node(
    graph: ModuleGraph,
    module_id: int,
    files: Tuple[str, ...],
    base: Optional[str],
    prefix: str,
    is_last: bool,
    chars: Tuple[str, str, str, str],
    visited: Set[int],
    lines: List[str],
    is_root: bool = False,
) -> None:
    branch, last, vertical, space = chars

    label = f"[{module_id}] {_get_path_str(files[module_id], base)}"
    is_cycle = module_id in visited
    cycle_marker = " [*]" if is_cycle else ""

    if is_root:
        lines.append(f"{label}{cycle_marker}")
    else:
        connector = last if is_last else branch
        lines.append(f"{prefix}{connector}{label}{cycle_marker}")

    if is_cycle:
        return

    visited.add(module_id)

    children = graph.get_targets(module_id)
    if is_root:
        child_prefix = ""
    else:
        child_prefix = prefix + (space if is_last else vertical)

    for i, child in enumerate(children):
        _render_node(
            graph,
            child,
            files,
            base,
            child_prefix,
            i == len(children) - 1,
            chars,
            visited,
            lines,
        )

    # Allow the module to appear again on other branches.
    visited.discard(module_id)
