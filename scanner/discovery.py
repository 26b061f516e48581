"""Search-path discovery for module resolution."""

import os
from typing import List, Tuple


# Tried in order when resolving a module request; "" means the path as written.
DEFAULT_EXTENSIONS: Tuple[str, ...] = ("", ".js", ".json", ".node")

# Compiled add-ons; referenced but never inlined.
NATIVE_EXTENSION = ".node"

JSON_EXTENSION = ".json"

NODE_MODULES = "node_modules"


def is_filesystem_request(name: str) -> bool:
    """
    Check whether a request names a file path rather than a package.

    Only requests that begin with "./", "../" or "/" count; bare names are
    looked up in node_modules directories.
    """
    return name.startswith(("./", "../", "/"))


def node_modules_paths(basedir: str) -> List[str]:
    """
    List the node_modules directories to search from `basedir`.

    Walks from `basedir` up to the filesystem root, nearest first. Directories
    that are themselves named node_modules do not get a nested entry.

    Args:
        basedir: Directory of the file issuing the request.

    Returns:
        Absolute node_modules directory paths, nearest first.
    """
    current = os.path.abspath(basedir)
    dirs: List[str] = []

    while True:
        if os.path.basename(current) != NODE_MODULES:
            dirs.append(os.path.join(current, NODE_MODULES))
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent

    return dirs
