import pytest

from changegraph.modules.core.builder import build_dependency_graph
from changegraph.modules.core.content import mapping_reader
from changegraph.modules.core.errors import ManifestError
from changegraph.modules.core.imports import ImportKind
from changegraph.modules.languages.rust import RustLanguage, expand_use_tree, parse_cargo_toml


def test_parse_cargo_toml():
    content = b"""
[package]
name = "my-app"

[dependencies]
serde = "1"
shared-utils = { path = "../shared" }

[dev-dependencies]
fixtures = { path = "fixtures" }
"""
    manifest = parse_cargo_toml("/r/app", content)
    assert manifest.name == "my_app"
    assert manifest.source_root == "/r/app/src"
    assert dict(manifest.remaps) == {
        "shared_utils": "/r/shared/src",
        "fixtures": "/r/app/fixtures/src",
    }


def test_parse_cargo_toml_rejects_invalid_toml():
    with pytest.raises(ManifestError):
        parse_cargo_toml("/r", b"[package\nname = ")
    with pytest.raises(ManifestError):
        parse_cargo_toml("/r", b"package = \"flat\"\n")


def test_expand_use_tree():
    assert expand_use_tree("crate::a::{b, c::{d as e}, self}") == ["crate::a::b", "crate::a::c::d", "crate::a"]
    assert expand_use_tree("::std::io") == ["std::io"]
    assert expand_use_tree("foo::Bar as Baz") == ["foo::Bar"]


def test_classify():
    rust = RustLanguage()
    assert rust.classify("std::collections::HashMap") is ImportKind.STANDARD_LIBRARY
    assert rust.classify("crate::config") is ImportKind.INTERNAL
    assert rust.classify("super::x") is ImportKind.INTERNAL
    assert rust.classify("serde::Deserialize") is ImportKind.EXTERNAL
    assert rust.classify("util::helpers", frozenset({"util"})) is ImportKind.INTERNAL


def test_is_test_file_checks_attributes_when_content_is_available():
    rust = RustLanguage()
    files = {
        "/r/tests/integration.rs": "#[test]\nfn it_works() {}\n",
        "/r/tests/common/mod.rs": "pub fn setup() {}\n",
    }
    reader = mapping_reader(files)
    assert rust.is_test_file("/r/tests/integration.rs", reader)
    assert not rust.is_test_file("/r/tests/common/mod.rs", reader)
    assert rust.is_test_file("/r/tests/common/mod.rs")
    assert not rust.is_test_file("/r/src/lib.rs", reader)


FILES = {
    "/r/Cargo.toml": '[package]\nname = "app"\n\n[dependencies]\nutil = { path = "util" }\n',
    "/r/src/main.rs": """mod config;
mod net;

use crate::config::Settings;
use util::helpers::run;
use std::io;

fn main() {}
""",
    "/r/src/config.rs": "mod defaults;\n\npub struct Settings;\n",
    "/r/src/config/defaults.rs": "pub const PORT: u16 = 80;\n",
    "/r/src/net/mod.rs": "use super::config;\n",
    "/r/util/src/helpers.rs": "pub fn run() {}\n",
}


@pytest.fixture
def rust_graph():
    pytest.importorskip("tree_sitter_rust")
    paths = [p for p in FILES if p.endswith(".rs")]
    return build_dependency_graph(paths, mapping_reader(FILES)).adjacency()


def test_mod_and_use_resolution(rust_graph):
    assert rust_graph["/r/src/main.rs"] == [
        "/r/src/config.rs",
        "/r/src/net/mod.rs",
        "/r/util/src/helpers.rs",
    ]


def test_mod_in_non_root_file_looks_in_stem_directory(rust_graph):
    assert rust_graph["/r/src/config.rs"] == ["/r/src/config/defaults.rs"]


def test_super_is_relative_to_using_file(rust_graph):
    assert rust_graph["/r/src/net/mod.rs"] == ["/r/src/config.rs"]
