"""
Concatenate all modules of a project into a single stream.

Processing a project works like this:

0. The global header is pushed. It defines the `__require`, `__getDirname`
   and `__getFilename` runtime functions.
1. The module at the cursor is read from disk and the cursor moves on.
2. The module is scanned for literal `require("...")` calls. Each request
   that resolves to a file gets an identity (new files are appended to the
   list the cursor walks) and the call becomes `__require(id, origin)`.
3. With an output path, `__dirname` and `__filename` become accessor calls
   carrying the module's path relative to the output file's directory.
4. The rewritten module is wrapped in its own header and footer and pushed.
5. Once the cursor reaches the end of the list, the global footer and the
   end of the stream are pushed.

Known limitations: dynamic requests (`require("./" + name)`),
`require.resolve()` and `require.cache` are left untouched.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from config import BundleOptions
from graph.model import ModuleGraph, Stats, StatsNotReadyError
from scanner.builder import GraphBuilder, read_source
from . import templates
from .readable import Readable


logger = logging.getLogger(__name__)


class State(Enum):
    NOT_STARTED = "not-started"
    HEADER_EMITTED = "header-emitted"
    FILE_EMITTED = "file-emitted"
    FOOTER_EMITTED = "footer-emitted"
    ENDED = "ended"
    ERRORED = "errored"


class ModuleConcatStream(Readable):
    """
    Readable stream of the concatenated project rooted at `entry_path`.

    The module list is discovered while the stream is read, so the output is
    produced incrementally and only as fast as the consumer pulls it.

    Args:
        entry_path: Entry module of the project; gets identity 0.
        options: BundleOptions, or a mapping of option names.
        **overrides: Individual options overriding `options`.
    """

    def __init__(
        self,
        entry_path: str,
        options: Union[BundleOptions, Mapping[str, Any], None] = None,
        resolver=None,
        **overrides: Any,
    ):
        self.options = BundleOptions.coerce(options, **overrides)
        super().__init__(high_water_mark=self.options.high_water_mark)
        self.graph = ModuleGraph(entry_path, self.options.exclude_files)
        self.builder = GraphBuilder(
            self.graph,
            output_path=self.options.output_path,
            exclude_node_modules=self.options.exclude_node_modules,
            browser=self.options.browser,
            resolver=resolver,
        )
        self.state = State.NOT_STARTED
        self._header_written = False

    def _read(self, size: int) -> None:
        self._continue_processing()

    def _continue_processing(self) -> None:
        if self.state in (State.ENDED, State.ERRORED):
            return

        if not self._header_written:
            self._header_written = True
            if not self.push(templates.HEADER):
                return
        if self.state is State.NOT_STARTED:
            self.state = State.HEADER_EMITTED

        while not self.graph.complete:
            if not self._add_file(self.graph.peek()):
                return

        self.push(templates.FOOTER)
        self.state = State.FOOTER_EMITTED
        self.push(None)
        self.state = State.ENDED
        logger.info(
            "Bundled %d module(s), %d native add-on(s) excluded",
            len(self.graph),
            len(self.graph.addons_excluded),
        )

    def _add_file(self, path: str) -> bool:
        """
        Read, rewrite and push the module at the cursor.

        Returns:
            True if more data can be pushed right away, False otherwise
            (backpressure, or the stream has failed).
        """
        try:
            source = read_source(path, self.options.encoding)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read module %s: %s", path, e)
            self.state = State.ERRORED
            self._schedule_error(e)
            return False

        # Advance before rewriting so a module is never processed twice.
        self.graph.advance()
        try:
            record = self.builder.transform(path, source)
            chunk = templates.wrap_module(record)
        except Exception as e:
            logger.error("Cannot rewrite module %s: %r", path, e)
            self.state = State.ERRORED
            self._schedule_error(e)
            return False

        logger.debug("Emitting module %d: %s", record.id, path)
        self.state = State.FILE_EMITTED
        return self.push(chunk)

    def get_stats(self) -> Stats:
        """
        Return the bundled files (in identity order) and excluded add-ons.

        Raises:
            StatsNotReadyError: If the project has not been fully processed,
                including when the stream failed part way.
        """
        if self.state is State.ERRORED:
            raise StatsNotReadyError("Statistics are not yet available.")
        return self.graph.stats()


def concat(
    entry_path: str,
    options: Union[BundleOptions, Mapping[str, Any], None] = None,
    **overrides: Any,
) -> str:
    """Bundle a project and return the whole output as one string."""
    return "".join(ModuleConcatStream(entry_path, options, **overrides))
