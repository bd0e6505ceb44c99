import pytest

from changegraph.modules.core.builder import build_dependency_graph
from changegraph.modules.core.content import mapping_reader
from changegraph.modules.core.errors import ManifestError
from changegraph.modules.core.imports import ImportKind
from changegraph.modules.languages.dart import DartLanguage, parse_pubspec


def test_parse_pubspec():
    manifest = parse_pubspec("/r", b"name: my_app\nversion: 1.0.0\n")
    assert manifest.name == "my_app"
    assert manifest.source_root == "/r/lib"


def test_parse_pubspec_without_name():
    with pytest.raises(ManifestError):
        parse_pubspec("/r", b"version: 1.0.0\n")


@pytest.mark.parametrize(
    "content",
    [
        b'"name": my_app\n',
        b"name : my_app\n",
        b"{name: my_app, version: 1.0.0}\n",
        b"# app\nname: 'my_app'\ndependencies:\n  flutter:\n    sdk: flutter\n",
    ],
)
def test_parse_pubspec_yaml_forms(content):
    assert parse_pubspec("/r", content).name == "my_app"


@pytest.mark.parametrize("content", [b"- name\n- other\n", b"name: [unclosed\n", b"name: 3\n"])
def test_parse_pubspec_rejects_malformed(content):
    with pytest.raises(ManifestError):
        parse_pubspec("/r", content)


def test_classify():
    dart = DartLanguage()
    assert dart.classify("dart:async") is ImportKind.STANDARD_LIBRARY
    assert dart.classify("package:flutter/material.dart") is ImportKind.EXTERNAL
    assert dart.classify("package:my_app/src/user.dart", frozenset({"my_app"})) is ImportKind.INTERNAL
    assert dart.classify("src/order.dart") is ImportKind.INTERNAL


def test_is_test_file():
    dart = DartLanguage()
    assert dart.is_test_file("/r/test/widget_test.dart")
    assert dart.is_test_file("/r/lib/user_test.dart")
    assert not dart.is_test_file("/r/lib/user.dart")


def test_package_self_imports_relative_imports_and_parts():
    files = {
        "/r/pubspec.yaml": "name: my_app\n",
        "/r/lib/main.dart": """import 'package:my_app/src/user.dart';
import 'package:flutter/material.dart';
import 'dart:async';
import 'src/order.dart';

part 'main.g.dart';
""",
        "/r/lib/src/user.dart": "class User {}\n",
        "/r/lib/src/order.dart": "import 'user.dart';\n\nclass Order {}\n",
        "/r/lib/main.g.dart": "part of 'main.dart';\n",
    }
    paths = [p for p in files if p.endswith(".dart")]
    graph = build_dependency_graph(paths, mapping_reader(files)).adjacency()
    assert graph["/r/lib/main.dart"] == [
        "/r/lib/main.g.dart",
        "/r/lib/src/order.dart",
        "/r/lib/src/user.dart",
    ]
    assert graph["/r/lib/src/order.dart"] == ["/r/lib/src/user.dart"]
