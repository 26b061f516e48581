"""Module resolution: mapping a `require()` request to an actual file path."""

import json
import logging
import os
import re
from typing import Any, Callable, Dict, Iterable, Optional, Set

from .discovery import DEFAULT_EXTENSIONS, node_modules_paths


logger = logging.getLogger(__name__)

PackageFilter = Callable[[Dict[str, Any], str], Dict[str, Any]]

# Built-in modules that need no file resolution.
CORE_MODULES = frozenset({
    "assert", "assert/strict", "async_hooks", "buffer", "child_process",
    "cluster", "console", "constants", "crypto", "dgram",
    "diagnostics_channel", "dns", "dns/promises", "domain", "events", "fs",
    "fs/promises", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "path/posix", "path/win32", "perf_hooks", "process",
    "punycode", "querystring", "readline", "readline/promises", "repl",
    "stream", "stream/consumers", "stream/promises", "stream/web",
    "string_decoder", "sys", "timers", "timers/promises", "tls",
    "trace_events", "tty", "url", "util", "util/types", "v8", "vm",
    "wasi", "worker_threads", "zlib",
})

# "./x", "../x", ".", "..", "/x", "C:\x"
_PATH_REQUEST = re.compile(r"^(?:\.\.?(?:/|$)|/|([A-Za-z]:)?[/\\])")


class ResolutionError(LookupError):
    """Raised when a module request cannot be mapped to a file."""

    def __init__(self, request: str, basedir: str, reason: Optional[str] = None):
        self.request = request
        self.basedir = basedir
        self.reason = reason
        message = f"Cannot find module '{request}' from '{basedir}'"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


def is_core(name: str) -> bool:
    """Check if a request names a built-in module."""
    return name.startswith("node:") or name in CORE_MODULES


def browser_package_filter(pkg: Dict[str, Any], pkg_path: str) -> Dict[str, Any]:
    """
    Prefer a package's "browser" entry point over "main".

    Only the string form of the field is honoured; the object form, which
    remaps individual files, leaves "main" untouched.
    """
    browser = pkg.get("browser")
    if isinstance(browser, str) and browser:
        pkg = dict(pkg)
        pkg["main"] = browser
    return pkg


def resolve_sync(
    name: str,
    basedir: str,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    package_filter: Optional[PackageFilter] = None,
) -> str:
    """
    Resolve a module request to an absolute file path.

    Resolution order:
    1. Path requests ("./", "../", "/") are loaded as a file, then as a
       directory, relative to `basedir`.
    2. Core module names are returned unchanged.
    3. Bare names are looked up in node_modules directories from `basedir`
       upward.

    Args:
        name: The request exactly as passed to `require()`.
        basedir: Directory of the requesting file.
        extensions: Suffixes tried in order when loading a file.
        package_filter: Optional hook applied to each parsed package.json.

    Returns:
        Absolute path of the resolved file, or `name` itself for core modules.

    Raises:
        ResolutionError: If nothing matches or package metadata is unreadable.
    """
    extensions = tuple(extensions)
    basedir = os.path.abspath(basedir)

    if _PATH_REQUEST.match(name):
        candidate = os.path.normpath(os.path.join(basedir, name))
        as_directory_only = name in (".", "..") or name.endswith(("/", "\\"))
        resolved = None
        if not as_directory_only:
            resolved = _load_as_file(candidate, extensions)
        if resolved is None:
            resolved = _load_as_directory(candidate, extensions, package_filter, basedir)
        if resolved is not None:
            return resolved
    elif is_core(name):
        return name
    else:
        for modules_dir in node_modules_paths(basedir):
            candidate = os.path.join(modules_dir, name)
            resolved = _load_as_file(candidate, extensions)
            if resolved is None:
                resolved = _load_as_directory(candidate, extensions, package_filter, basedir)
            if resolved is not None:
                return resolved

    raise ResolutionError(name, basedir)


def _load_as_file(path: str, extensions: Iterable[str]) -> Optional[str]:
    for ext in extensions:
        candidate = path + ext
        if os.path.isfile(candidate):
            return candidate
    return None


def _load_as_directory(
    path: str,
    extensions: Iterable[str],
    package_filter: Optional[PackageFilter],
    basedir: str,
    visited: Optional[Set[str]] = None,
) -> Optional[str]:
    if not os.path.isdir(path):
        return None

    # "main" can lead into another package directory.
    visited = set() if visited is None else visited
    if path in visited:
        raise ResolutionError(path, basedir, reason="package.json \"main\" cycle")
    visited.add(path)

    pkg_path = os.path.join(path, "package.json")
    if os.path.isfile(pkg_path):
        pkg = _read_package(pkg_path, basedir)
        if package_filter is not None:
            pkg = package_filter(pkg, pkg_path)

        main = pkg.get("main")
        if main:
            if not isinstance(main, str):
                main = "index"
            main_path = os.path.normpath(os.path.join(path, main))
            resolved = _load_as_file(main_path, extensions)
            if resolved is None and main_path != path:
                resolved = _load_as_directory(
                    main_path, extensions, package_filter, basedir, visited
                )
            if resolved is not None:
                return resolved

    return _load_as_file(os.path.join(path, "index"), extensions)


def _read_package(pkg_path: str, basedir: str) -> Dict[str, Any]:
    try:
        with open(pkg_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.debug("Unreadable package metadata %s: %s", pkg_path, e)
        raise ResolutionError(pkg_path, basedir, reason=f"invalid package.json: {e}") from e

    if not isinstance(data, dict):
        raise ResolutionError(pkg_path, basedir, reason="package.json is not an object")
    return data
