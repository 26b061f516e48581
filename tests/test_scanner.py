"""Tests for scanner module."""

import json
import os

import pytest

from graph.model import Inclusion, Kind, ModuleGraph
from scanner.builder import GraphBuilder, read_source
from scanner.discovery import is_filesystem_request, node_modules_paths
from scanner.parser import (
    rewrite_path_tokens,
    rewrite_requires,
    strip_line_comments,
    unescape_path,
)
from scanner.resolver import (
    ResolutionError,
    browser_package_filter,
    is_core,
    resolve_sync,
)


def find_requires(code):
    """Collect the module paths of all call sites, leaving the code as is."""
    found = []
    rewrite_requires(code, found.append)
    return found


class FakeResolver:
    """Resolver double that records every request it sees."""

    def __init__(self, core=(), mapping=None):
        self.core = set(core)
        self.mapping = mapping or {}
        self.requests = []

    def is_core(self, name):
        return name in self.core

    def resolve_sync(self, name, basedir, extensions, package_filter=None):
        self.requests.append(name)
        if name in self.mapping:
            return self.mapping[name]
        raise ResolutionError(name, basedir)


class BrokenResolver(FakeResolver):
    """Resolver double whose lookups fail with an unexpected error."""

    def resolve_sync(self, name, basedir, extensions, package_filter=None):
        self.requests.append(name)
        raise RuntimeError("resolver crashed")


class TestCommentStripping:
    """Tests for line comment removal."""

    def test_strip_own_line_comment(self):
        """Test comments on their own line are removed with their line break."""
        assert strip_line_comments("a();\n// comment\nb();") == "a();\nb();"

    def test_strip_indented_comment(self):
        assert strip_line_comments("a();\n    // comment\nb();") == "a();\nb();"

    def test_keep_trailing_comment(self):
        """Test comments after code on the same line are kept."""
        code = "a(); // comment\nb();"
        assert strip_line_comments(code) == code

    def test_first_line_is_kept(self):
        """Test a comment on the very first line is not stripped."""
        code = "// header\na();"
        assert strip_line_comments(code) == code

    def test_commented_require_disappears(self):
        """Test a commented-out require is not seen by the scanner."""
        code = strip_line_comments('a();\n// require("./old")\nb();')
        assert find_requires(code) == []

    def test_crlf_line_breaks(self):
        assert strip_line_comments("a();\r\n// comment\r\nb();") == "a();\r\nb();"

    def test_string_literal_limitation(self):
        """Test a comment-like line inside a template literal is stripped too."""
        assert strip_line_comments("var s = `a\n// b`;") == "var s = `a"


class TestRequireScanning:
    """Tests for require() call site detection."""

    def test_double_and_single_quotes(self):
        code = 'require("./a"); require(\'./b\');'
        assert find_requires(code) == ["./a", "./b"]

    def test_whitespace_anywhere(self):
        assert find_requires("require ( \t'./a'\n )") == ["./a"]

    def test_mismatched_quotes(self):
        assert find_requires("require(\"./a')") == []

    def test_dynamic_requests_ignored(self):
        """Test computed arguments are never matched."""
        assert find_requires('require("./" + name)') == []
        assert find_requires("require(name)") == []

    def test_other_quote_inside_path(self):
        assert find_requires("require(\"./it's\")") == ["./it's"]

    def test_escaped_backslashes(self):
        """Test doubled backslashes are accepted, single ones are not."""
        assert find_requires('require("C:\\\\lib\\\\a")') == ["C:\\\\lib\\\\a"]
        assert find_requires('require("a\\b")') == []

    def test_unescape_first_pair_only(self):
        assert unescape_path("C:\\\\lib\\\\a") == "C:\\lib\\\\a"
        assert unescape_path("./a") == "./a"

    def test_rewrite_callback(self):
        """Test only call sites with a replacement are rewritten."""
        code = 'var a = require("./a"), fs = require("fs");'
        result = rewrite_requires(code, lambda name: "X" if name == "./a" else None)
        assert result == 'var a = X, fs = require("fs");'


class TestPathTokens:
    """Tests for __dirname / __filename replacement."""

    def test_both_tokens_get_same_argument(self):
        code = "load(__dirname, __filename);"
        result = rewrite_path_tokens(code, "lib/a.js")
        assert result == 'load(__getDirname("lib/a.js"), __getFilename("lib/a.js"));'

    def test_argument_is_json_encoded(self):
        result = rewrite_path_tokens("__dirname", 'we"ird\\dir')
        assert result == '__getDirname("we\\"ird\\\\dir")'


class TestDiscovery:
    """Tests for search-path helpers."""

    def test_is_filesystem_request(self):
        assert is_filesystem_request("./a")
        assert is_filesystem_request("../a")
        assert is_filesystem_request("/abs/a")
        assert not is_filesystem_request("lodash")
        assert not is_filesystem_request(".hidden")

    def test_node_modules_paths(self):
        """Test nested node_modules directories are not doubled up."""
        paths = node_modules_paths("/repo/node_modules/pkg")
        assert paths == [
            "/repo/node_modules/pkg/node_modules",
            "/repo/node_modules",
            "/node_modules",
        ]


class TestResolver:
    """Tests for module resolution."""

    def test_is_core(self):
        assert is_core("fs")
        assert is_core("node:fs")
        assert is_core("fs/promises")
        assert not is_core("./fs")
        assert not is_core("lodash")

    def test_core_name_returned_unchanged(self, tmp_path):
        assert resolve_sync("path", str(tmp_path)) == "path"

    def test_extension_probing(self, tmp_path):
        """Test the bare path wins, then .js, then .json."""
        (tmp_path / "a.js").write_text("")
        (tmp_path / "data.json").write_text("{}")
        (tmp_path / "exact").write_text("")
        (tmp_path / "exact.js").write_text("")

        assert resolve_sync("./a", str(tmp_path)) == str(tmp_path / "a.js")
        assert resolve_sync("./data", str(tmp_path)) == str(tmp_path / "data.json")
        assert resolve_sync("./exact", str(tmp_path)) == str(tmp_path / "exact")

    def test_parent_relative(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "util.js").write_text("")

        resolved = resolve_sync("../util", str(tmp_path / "src"))
        assert resolved == str(tmp_path / "util.js")

    def test_directory_index(self, tmp_path):
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "index.js").write_text("")

        assert resolve_sync("./lib", str(tmp_path)) == str(tmp_path / "lib" / "index.js")

    def test_package_main(self, tmp_path):
        pkg = tmp_path / "node_modules" / "pkg"
        pkg.mkdir(parents=True)
        (pkg / "package.json").write_text(json.dumps({"main": "dist/main"}))
        (pkg / "dist").mkdir()
        (pkg / "dist" / "main.js").write_text("")

        assert resolve_sync("pkg", str(tmp_path)) == str(pkg / "dist" / "main.js")

    def test_package_browser_field(self, tmp_path):
        """Test the browser filter swaps "main" for "browser"."""
        pkg = tmp_path / "node_modules" / "pkg"
        pkg.mkdir(parents=True)
        (pkg / "package.json").write_text(
            json.dumps({"main": "node.js", "browser": "browser.js"})
        )
        (pkg / "node.js").write_text("")
        (pkg / "browser.js").write_text("")

        assert resolve_sync("pkg", str(tmp_path)) == str(pkg / "node.js")
        assert resolve_sync(
            "pkg", str(tmp_path), package_filter=browser_package_filter
        ) == str(pkg / "browser.js")

    def test_browser_field_object_form_ignored(self):
        pkg = {"main": "node.js", "browser": {"./node.js": "./browser.js"}}
        assert browser_package_filter(pkg, "package.json")["main"] == "node.js"

    def test_node_modules_searched_upwards(self, tmp_path):
        pkg = tmp_path / "node_modules" / "shared"
        pkg.mkdir(parents=True)
        (pkg / "index.js").write_text("")
        deep = tmp_path / "src" / "deep"
        deep.mkdir(parents=True)

        assert resolve_sync("shared", str(deep)) == str(pkg / "index.js")

    def test_missing_module(self, tmp_path):
        with pytest.raises(ResolutionError):
            resolve_sync("./nope", str(tmp_path))
        with pytest.raises(ResolutionError):
            resolve_sync("not-installed", str(tmp_path))

    def test_malformed_package_json(self, tmp_path):
        pkg = tmp_path / "node_modules" / "broken"
        pkg.mkdir(parents=True)
        (pkg / "package.json").write_text("{not json")
        (pkg / "index.js").write_text("")

        with pytest.raises(ResolutionError):
            resolve_sync("broken", str(tmp_path))

    def test_package_main_cycle(self, tmp_path):
        """Test packages whose "main" fields point at each other do not loop."""
        (tmp_path / "a").mkdir()
        (tmp_path / "c").mkdir()
        (tmp_path / "a" / "package.json").write_text(json.dumps({"main": "../c"}))
        (tmp_path / "c" / "package.json").write_text(json.dumps({"main": "../a"}))

        with pytest.raises(ResolutionError):
            resolve_sync("./a", str(tmp_path))


@pytest.fixture
def project(tmp_path):
    """A small project: index.js requiring local files, a package and an add-on."""
    (tmp_path / "a.js").write_text("")
    (tmp_path / "b.js").write_text("")
    (tmp_path / "skip.js").write_text("")
    (tmp_path / "build").mkdir()
    (tmp_path / "build" / "addon.node").write_bytes(b"\x7fELF")
    pkg = tmp_path / "node_modules" / "pkg"
    pkg.mkdir(parents=True)
    (pkg / "index.js").write_text("")
    entry = tmp_path / "index.js"
    entry.write_text("")
    return tmp_path


class TestGraphBuilder:
    """Tests for reference decisions."""

    def test_core_module(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        result = builder.resolve_or_register("fs", graph.entry)

        assert result.kind is Kind.CORE
        assert len(graph) == 1

    def test_core_module_in_browser_mode_is_resolved(self):
        """Test browser mode lets core names go through resolution."""
        graph = ModuleGraph("/repo/index.js")
        fake = FakeResolver(core={"events"}, mapping={"events": "/repo/node_modules/events/events.js"})
        builder = GraphBuilder(graph, browser=True, resolver=fake)

        result = builder.resolve_or_register("events", graph.entry)

        assert fake.requests == ["events"]
        assert result.kind is Kind.REGISTERED
        assert result.id == 1

    def test_core_surfacing_after_resolution(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph, browser=True)

        assert builder.resolve_or_register("fs", graph.entry).kind is Kind.CORE
        assert len(graph) == 1

    def test_exclude_node_modules_skips_resolution(self):
        graph = ModuleGraph("/repo/index.js")
        fake = FakeResolver(mapping={"./a": "/repo/a.js"})
        builder = GraphBuilder(graph, exclude_node_modules=True, resolver=fake)

        assert builder.resolve_or_register("pkg", graph.entry).kind is Kind.EXCLUDED
        assert builder.resolve_or_register("./a", graph.entry).kind is Kind.REGISTERED
        assert fake.requests == ["./a"]

    def test_package_registered(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        result = builder.resolve_or_register("pkg", graph.entry)

        assert result.kind is Kind.REGISTERED
        assert graph.files[1] == str(project / "node_modules" / "pkg" / "index.js")

    def test_native_addon(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        result = builder.resolve_or_register("./build/addon.node", graph.entry)

        assert result.kind is Kind.NATIVE
        assert graph.addons_excluded == (str(project / "build" / "addon.node"),)
        assert len(graph) == 1

    def test_unresolved(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        assert builder.resolve_or_register("./missing", graph.entry).kind is Kind.UNRESOLVED
        assert len(graph) == 1

    def test_excluded_file(self, project):
        graph = ModuleGraph(str(project / "index.js"), exclude_files=[str(project / "skip.js")])
        builder = GraphBuilder(graph)

        assert builder.resolve_or_register("./skip", graph.entry).kind is Kind.EXCLUDED
        assert str(project / "skip.js") not in graph

    def test_dedup_across_origins(self, project):
        """Test one file referenced from two modules keeps one identity."""
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        first = builder.resolve_or_register("./b", graph.entry)
        builder.resolve_or_register("./a", graph.entry)
        second = builder.resolve_or_register("./b", str(project / "a.js"))

        assert first.id == second.id == 1
        assert graph.files == (
            str(project / "index.js"),
            str(project / "b.js"),
            str(project / "a.js"),
        )

    def test_backslash_unescaped_before_resolution(self):
        graph = ModuleGraph("/repo/index.js")
        fake = FakeResolver()
        builder = GraphBuilder(graph, resolver=fake)

        builder.resolve_or_register("./a\\\\b\\\\c", graph.entry)

        assert fake.requests == ["./a\\b\\\\c"]

    def test_resolver_crash_left_unresolved(self):
        """Test any resolver failure only leaves the reference as written."""
        graph = ModuleGraph("/repo/index.js")
        builder = GraphBuilder(graph, resolver=BrokenResolver())

        assert builder.resolve_or_register("./a", graph.entry).kind is Kind.UNRESOLVED
        assert len(graph) == 1

    def test_package_main_cycle_left_unresolved(self, project):
        (project / "cyc").mkdir()
        (project / "loop").mkdir()
        (project / "cyc" / "package.json").write_text(json.dumps({"main": "../loop"}))
        (project / "loop" / "package.json").write_text(json.dumps({"main": "../cyc"}))
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        assert builder.resolve_or_register("./cyc", graph.entry).kind is Kind.UNRESOLVED
        assert builder.resolve_or_register("./b", graph.entry).id == 1

    def test_skipped_files_recorded(self, project):
        """Test excluded files and add-ons are kept as records without identity."""
        skip = str(project / "skip.js")
        addon = str(project / "build" / "addon.node")
        graph = ModuleGraph(str(project / "index.js"), exclude_files=[skip])
        builder = GraphBuilder(graph)

        builder.resolve_or_register("./skip", graph.entry)
        builder.resolve_or_register("./build/addon.node", graph.entry)
        builder.resolve_or_register("./skip", graph.entry)

        assert [(r.path, r.id, r.inclusion) for r in graph.skipped] == [
            (skip, None, Inclusion.EXCLUDED),
            (addon, None, Inclusion.NATIVE_EXCLUDED),
        ]


class TestTransform:
    """Tests for rewriting a whole module."""

    def test_registered_reference(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        record = builder.transform(graph.entry, 'var b = require("./b");')

        assert record.id == 0
        assert record.rewritten == "var b = __require(1,0);"
        assert graph.edges == ((0, 1),)

    def test_origin_identity_of_later_module(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)
        builder.transform(graph.entry, 'require("./a"); require("./b");')

        record = builder.transform(str(project / "a.js"), 'require("./b");')

        assert record.id == 1
        assert record.rewritten == "__require(2,1);"

    def test_untouched_references(self, project):
        """Test core, excluded, native and unresolved call sites stay as written."""
        graph = ModuleGraph(str(project / "index.js"), exclude_files=[str(project / "skip.js")])
        builder = GraphBuilder(graph)
        code = (
            'require("fs");\n'
            "require('./skip');\n"
            'require( "./build/addon.node" );\n'
            'require("./missing");'
        )

        record = builder.transform(graph.entry, code)

        assert record.rewritten == code
        assert len(graph) == 1

    def test_path_tokens_with_output_path(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph, output_path=str(project / "dist" / "bundle.js"))

        record = builder.transform(str(project / "a.js"), "f(__dirname, __filename);")

        expected = os.path.join("..", "a.js")
        literal = json.dumps(expected)
        assert record.rewritten == f"f(__getDirname({literal}), __getFilename({literal}));"

    def test_path_tokens_untouched_without_output_path(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph)

        assert builder.transform(graph.entry, "__dirname").rewritten == "__dirname"

    def test_path_tokens_untouched_in_browser_mode(self, project):
        graph = ModuleGraph(str(project / "index.js"))
        builder = GraphBuilder(graph, output_path=str(project / "out.js"), browser=True)

        assert builder.transform(graph.entry, "__filename").rewritten == "__filename"


class TestReadSource:
    """Tests for reading module sources."""

    def test_line_endings_preserved(self, tmp_path):
        path = tmp_path / "crlf.js"
        path.write_bytes(b"a();\r\nb();\r\n")

        assert read_source(str(path)) == "a();\r\nb();\r\n"

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            read_source(str(tmp_path / "gone.js"))
