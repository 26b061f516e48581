"""Static text wrapped around the whole bundle and around each module."""

import os
from importlib import resources

from graph.model import ModuleRecord
from scanner.discovery import JSON_EXTENSION
from scanner.parser import JSON_EXPORT_PREFIX


def _load(name: str) -> str:
    return resources.files(__package__).joinpath("assets", name).read_text(encoding="utf-8")


# Loaded once at import; never reloaded.
HEADER = _load("header.js")
FOOTER = _load("footer.js")
FILE_HEADER = _load("file_header.js")
FILE_FOOTER = _load("file_footer.js")


def render(template: str, module_id: int, path: str) -> str:
    """Fill the ${id} and ${path} placeholders of a per-module template."""
    return template.replace("${id}", str(module_id)).replace("${path}", path)


def wrap_module(record: ModuleRecord) -> str:
    """
    Wrap a rewritten module body in its header and footer.

    JSON documents get an assignment prefix so the parsed value becomes the
    module's exports.
    """
    is_json = os.path.splitext(record.path)[1] == JSON_EXTENSION
    prefix = JSON_EXPORT_PREFIX if is_json else ""
    return (
        render(FILE_HEADER, record.id, record.path)
        + prefix
        + record.rewritten
        + render(FILE_FOOTER, record.id, record.path)
    )
