"""Text passes that find and rewrite references inside a module's source."""

import json
import re
from typing import Callable, Optional


# A line break, optional indentation, then "//" through the end of the line.
# Not string-literal aware: a "//" that opens a continuation line inside a
# string is stripped as well.
LINE_COMMENT_RE = re.compile(r"(?:\r\n?|\n)\s*//[^\r\n\u2028\u2029]*")

# require("...") / require('...') with optional whitespace anywhere.
# Group 1 is the quote, group 2 the module path. Backslashes inside the
# path are only accepted as doubled pairs (Windows paths).
REQUIRE_RE = re.compile(
    r"""require\s*\(\s*(["'])((?:(?!\1)[^\\]|\\\\)*)\1\s*\)"""
)

DIRNAME_TOKEN = "__dirname"
FILENAME_TOKEN = "__filename"

JSON_EXPORT_PREFIX = "module.exports = "


def strip_line_comments(code: str) -> str:
    """Remove line comments that start their own line."""
    return LINE_COMMENT_RE.sub("", code)


def unescape_path(module_path: str) -> str:
    """
    Turn an escaped backslash pair back into a single backslash.

    Only the first pair is replaced.
    """
    return module_path.replace("\\\\", "\\", 1)


def format_require(target_id: int, origin_id: int) -> str:
    """Build the indexed-reference call that replaces a `require()`."""
    return f"__require({target_id},{origin_id})"


def rewrite_requires(code: str, replace: Callable[[str], Optional[str]]) -> str:
    """
    Rewrite every literal `require()` call site in `code`.

    Args:
        code: Source text (comments already stripped).
        replace: Called with the raw module path of each call site. Returns
            the replacement text, or None to leave the call site untouched.

    Returns:
        The rewritten source.
    """
    def _sub(match: "re.Match[str]") -> str:
        replacement = replace(match.group(2))
        return match.group(0) if replacement is None else replacement

    return REQUIRE_RE.sub(_sub, code)


def rewrite_path_tokens(code: str, relative_path: str) -> str:
    """
    Replace `__dirname` and `__filename` with accessor calls.

    Both accessors receive the same argument: the module's path relative to
    the directory of the output file.
    """
    literal = json.dumps(relative_path, ensure_ascii=False)
    return (
        code
        .replace(DIRNAME_TOKEN, f"__getDirname({literal})")
        .replace(FILENAME_TOKEN, f"__getFilename({literal})")
    )
