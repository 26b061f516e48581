#!/usr/bin/env python3
"""
modconcat CLI

Concatenates a CommonJS project, starting from its entry module, into a
single file.
"""

import argparse
import logging
import os
import sys
import tempfile
from pathlib import Path

from config import BundleOptions, ConfigError, load_config
from exporters import to_ascii, to_json, to_mermaid
from graph.model import Inclusion, StatsNotReadyError
from stream.emitter import ModuleConcatStream


def parse_args(args=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="modconcat",
        description="Concatenate a project's modules into a single file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  modconcat index.js -o dist/bundle.js       # Bundle to a file
  modconcat index.js > bundle.js             # Bundle to stdout
  modconcat index.js -o out.js --browser     # Prefer package.json "browser"
  modconcat index.js --exclude-node-modules  # Only bundle local files
  modconcat index.js -o out.js --report ascii  # Also print the module tree
  modconcat index.js --config modconcat.yaml   # Read options from a file
        """,
    )

    parser.add_argument(
        "entry",
        help="Entry module of the project (gets identity 0)",
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Output file (default: stdout). Also enables __dirname/__filename rewriting",
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="YAML, TOML or JSON file with bundle options",
    )

    parser.add_argument(
        "--exclude",
        nargs="+",
        default=None,
        metavar="FILE",
        help="Files to leave out of the bundle even when required",
    )

    parser.add_argument(
        "--exclude-node-modules",
        action="store_true",
        default=None,
        help="Do not bundle packages (requests not starting with ./, ../ or /)",
    )

    parser.add_argument(
        "--browser",
        action="store_true",
        default=None,
        help="Bundle for the browser: try core modules, prefer package.json \"browser\"",
    )

    parser.add_argument(
        "--report",
        choices=["ascii", "mermaid", "json"],
        default=None,
        help="Print a report of the bundled modules to stderr",
    )

    parser.add_argument(
        "--report-output",
        type=str,
        default=None,
        help="Write the report to this file instead of stderr",
    )

    parser.add_argument(
        "--ascii-style",
        choices=["tree", "ascii"],
        default="tree",
        help="ASCII report style: 'tree' (Unicode) or 'ascii' (pure ASCII)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug output)",
    )

    return parser.parse_args(args)


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_options(parsed) -> BundleOptions:
    """Combine the config file (if any) with command line flags."""
    options = load_config(parsed.config) if parsed.config else BundleOptions()

    exclude_files = None
    if parsed.exclude:
        exclude_files = list(options.exclude_files) + list(parsed.exclude)

    return options.merged(
        output_path=parsed.output,
        exclude_files=exclude_files,
        exclude_node_modules=parsed.exclude_node_modules,
        browser=parsed.browser,
    )


def write_atomic(stream: ModuleConcatStream, output_path: Path) -> None:
    """
    Pipe the bundle into `output_path`.

    The bundle goes to a temporary file next to the target, which replaces
    the target only once the stream has ended. On failure the temporary file
    is removed and an existing target is left as it was.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            stream.pipe(f)
        os.replace(tmp_name, output_path)
    except BaseException:
        os.unlink(tmp_name)
        raise


def main(args=None):
    """Main entry point."""
    parsed = parse_args(args)
    configure_logging(parsed.verbose)

    entry = Path(parsed.entry)
    if not entry.is_file():
        print(f"Error: '{parsed.entry}' is not a file", file=sys.stderr)
        return 1

    try:
        options = build_options(parsed)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    stream = ModuleConcatStream(str(entry), options)

    # Write output
    try:
        if options.output_path:
            output_path = Path(options.output_path)
            write_atomic(stream, output_path)
            print(f"Output written to: {output_path}", file=sys.stderr)
        else:
            stream.pipe(sys.stdout)
            sys.stdout.flush()
    except Exception as e:
        print(f"Error bundling project: {e}", file=sys.stderr)
        return 1

    try:
        stats = stream.get_stats()
    except StatsNotReadyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Modules bundled: {len(stats.files)}", file=sys.stderr)
    for addon in stats.addons_excluded:
        print(f"Native add-on excluded: {addon}", file=sys.stderr)
    for record in stream.graph.skipped:
        if record.inclusion is Inclusion.EXCLUDED:
            print(f"File excluded: {record.path}", file=sys.stderr)

    if parsed.report:
        if parsed.report == "mermaid":
            report = to_mermaid(stream.graph)
        elif parsed.report == "json":
            report = to_json(stream.graph)
        else:  # ascii
            report = to_ascii(stream.graph, style=parsed.ascii_style)

        if parsed.report_output:
            try:
                Path(parsed.report_output).write_text(report, encoding="utf-8")
            except OSError as e:
                print(f"Error writing report: {e}", file=sys.stderr)
                return 1
        else:
            print(report, file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
