"""Graph builder: decides what each reference becomes and rewrites module sources."""

import logging
import os
from typing import Optional

from graph.model import Inclusion, Kind, ModuleGraph, ModuleRecord, Resolution
from . import resolver as default_resolver
from .discovery import DEFAULT_EXTENSIONS, NATIVE_EXTENSION, is_filesystem_request
from .parser import (
    format_require,
    rewrite_path_tokens,
    rewrite_requires,
    strip_line_comments,
    unescape_path,
)
from .resolver import ResolutionError, browser_package_filter


logger = logging.getLogger(__name__)


def read_source(path: str, encoding: str = "utf-8") -> str:
    """
    Read a module's source text.

    This is the only step of processing a module that is allowed to fail;
    OSError and UnicodeDecodeError propagate to the caller.
    """
    with open(path, "r", encoding=encoding, newline="") as f:
        return f.read()


class GraphBuilder:
    """
    Grows a ModuleGraph while module sources are rewritten.

    Every `require("...")` found in a module is looked up here. New files are
    appended to the graph's list, which the stream cursor is walking at the
    same time, so discovery and emission interleave.
    """

    def __init__(
        self,
        graph: ModuleGraph,
        output_path: Optional[str] = None,
        exclude_node_modules: bool = False,
        browser: bool = False,
        resolver=None,
    ):
        self.graph = graph
        self.output_path = output_path
        self.exclude_node_modules = exclude_node_modules
        self.browser = browser
        self.resolver = resolver if resolver is not None else default_resolver

    @property
    def rewrites_path_tokens(self) -> bool:
        return bool(self.output_path) and not self.browser

    def resolve_or_register(self, requested_name: str, origin_path: str) -> Resolution:
        """
        Decide what a reference found in `origin_path` should become.

        Args:
            requested_name: Module path as written inside the call site.
            origin_path: Absolute path of the file containing the reference.

        Returns:
            A Resolution; only REGISTERED carries an identity.
        """
        if self.resolver.is_core(requested_name) and not self.browser:
            logger.debug("%s: core module %r left as is", origin_path, requested_name)
            return Resolution(Kind.CORE)

        name = unescape_path(requested_name)

        if self.exclude_node_modules and not is_filesystem_request(name):
            logger.debug("%s: package %r excluded", origin_path, name)
            return Resolution(Kind.EXCLUDED)

        package_filter = browser_package_filter if self.browser else None
        try:
            resolved = self.resolver.resolve_sync(
                name,
                basedir=os.path.dirname(origin_path),
                extensions=DEFAULT_EXTENSIONS,
                package_filter=package_filter,
            )
        except ResolutionError as e:
            logger.debug("%s: could not resolve %r: %s", origin_path, name, e)
            return Resolution(Kind.UNRESOLVED)
        except Exception as e:
            # Any resolver failure leaves the call site as written.
            logger.warning("%s: resolver failed for %r: %r", origin_path, name, e)
            return Resolution(Kind.UNRESOLVED)

        if self.resolver.is_core(resolved):
            return Resolution(Kind.CORE, path=resolved)

        if os.path.splitext(resolved)[1].lower() == NATIVE_EXTENSION:
            logger.info("Native add-on excluded: %s", resolved)
            self.graph.add_addon(resolved)
            self.graph.skip(resolved, Inclusion.NATIVE_EXCLUDED)
            return Resolution(Kind.NATIVE, path=resolved)

        existing = self.graph.id_of(resolved)
        if existing is not None:
            return Resolution(Kind.REGISTERED, id=existing, path=resolved)

        if self.graph.is_excluded(resolved):
            logger.debug("%s: excluded file %s left as is", origin_path, resolved)
            self.graph.skip(resolved, Inclusion.EXCLUDED)
            return Resolution(Kind.EXCLUDED, path=resolved)

        new_id = self.graph.register(resolved)
        logger.debug("Discovered module %d: %s", new_id, resolved)
        return Resolution(Kind.REGISTERED, id=new_id, path=resolved)

    def relative_output_path(self, path: str) -> str:
        """Path of `path` relative to the directory holding the output file."""
        output_dir = os.path.dirname(os.path.abspath(self.output_path))
        return os.path.relpath(path, output_dir)

    def transform(self, path: str, source: str) -> ModuleRecord:
        """
        Rewrite the source of the module at `path`.

        Line comments are stripped, literal `require()` calls that resolve to
        bundled modules become `__require(id, origin)`, and `__dirname` /
        `__filename` become accessor calls when an output path is set.
        Anything that cannot be resolved is left as written.
        """
        code = strip_line_comments(source)

        def _replace(module_path: str) -> Optional[str]:
            resolution = self.resolve_or_register(module_path, path)
            if not resolution.registered:
                return None
            # Looked up on every call: the list may have grown meanwhile.
            origin_id = self.graph.id_of(path)
            self.graph.add_edge(origin_id, resolution.id)
            return format_require(resolution.id, origin_id)

        code = rewrite_requires(code, _replace)

        if self.rewrites_path_tokens:
            code = rewrite_path_tokens(code, self.relative_output_path(path))

        return ModuleRecord(
            path=path,
            id=self.graph.id_of(path),
            source=source,
            rewritten=code,
            inclusion=Inclusion.INCLUDED,
        )
