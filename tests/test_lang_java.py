import pytest

from changegraph.modules.core import syntax
from changegraph.modules.core.builder import build_dependency_graph
from changegraph.modules.core.content import mapping_reader
from changegraph.modules.core.imports import ImportKind
from changegraph.modules.languages.java import JavaLanguage, import_package
from changegraph.modules.languages.kotlin import KotlinLanguage, kotlin_import_package


def _build(files, **kwargs):
    return build_dependency_graph(list(files), mapping_reader(files), **kwargs).adjacency()


def test_import_package():
    assert import_package("com.acme.model.User") == "com.acme.model"
    assert import_package("com.acme.model") == "com.acme.model"
    assert kotlin_import_package("com.acme.model.User.Nested") == "com.acme.model"


def test_java_classify():
    java = JavaLanguage()
    scopes = frozenset({"com.acme.model"})
    assert java.classify("java.util.List") is ImportKind.STANDARD_LIBRARY
    assert java.classify("com.acme.model.User", scopes) is ImportKind.INTERNAL
    assert java.classify("org.junit.Test", scopes) is ImportKind.EXTERNAL


def test_java_is_test_file():
    java = JavaLanguage()
    assert java.is_test_file("/r/src/test/java/com/acme/Anything.java")
    assert java.is_test_file("/r/src/main/java/com/acme/UserTest.java")
    assert not java.is_test_file("/r/src/main/java/com/acme/User.java")


JAVA_FILES = {
    "/r/src/com/acme/model/User.java": "package com.acme.model;\n\npublic class User {}\n",
    "/r/src/com/acme/model/Order.java": "package com.acme.model;\n\npublic class Order { User owner; }\n",
    "/r/src/com/acme/model/Audit.java": "package com.acme.model;\n\npublic class Audit {}\n",
    "/r/src/com/acme/util/Strings.java": (
        "package com.acme.util;\n\npublic class Strings { public static String join() { return \"\"; } }\n"
    ),
    "/r/src/com/acme/app/Helper.java": "package com.acme.app;\n\nclass Helper {}\n",
    "/r/src/com/acme/app/Main.java": """package com.acme.app;

import com.acme.model.*;
import java.util.List;
import static com.acme.util.Strings.join;

public class Main {
    List<User> users;
    String s = join();
    Helper h;
}
""",
}


def test_java_wildcard_static_and_same_package():
    pytest.importorskip("tree_sitter_java")
    graph = _build(JAVA_FILES)
    assert graph["/r/src/com/acme/app/Main.java"] == [
        "/r/src/com/acme/app/Helper.java",
        "/r/src/com/acme/model/User.java",
        "/r/src/com/acme/util/Strings.java",
    ]
    assert graph["/r/src/com/acme/model/Order.java"] == ["/r/src/com/acme/model/User.java"]
    assert "/r/src/com/acme/model/Audit.java" not in graph


def test_java_wildcard_without_matching_symbol_uses_fallback_policy():
    pytest.importorskip("tree_sitter_java")
    files = {
        "/r/a/One.java": "package a;\n\npublic class One {}\n",
        "/r/a/Two.java": "package a;\n\npublic class Two {}\n",
        "/r/b/Main.java": "package b;\n\nimport a.*;\n\npublic class Main {}\n",
    }
    assert _build(files)["/r/b/Main.java"] == ["/r/a/One.java", "/r/a/Two.java"]
    assert "/r/b/Main.java" not in _build(files, symbol_fallback=False)


KOTLIN_FILES = {
    "/r/src/com/acme/model/User.kt": "package com.acme.model\n\nclass User\n",
    "/r/src/com/acme/model/Order.kt": "package com.acme.model\n\ndata class Order(val owner: User)\n",
    "/r/src/com/acme/app/Main.kt": """package com.acme.app

import com.acme.model.*
import kotlin.collections.List

fun main() {
    val users: List<User> = listOf()
}
""",
}


def test_kotlin_wildcard_links_unique_declarer():
    if not syntax.grammar_available("kotlin"):
        pytest.skip("kotlin grammar not installed")
    graph = _build(KOTLIN_FILES)
    assert graph["/r/src/com/acme/app/Main.kt"] == ["/r/src/com/acme/model/User.kt"]
    assert graph["/r/src/com/acme/model/Order.kt"] == ["/r/src/com/acme/model/User.kt"]


def test_kotlin_classify_and_test_files():
    kotlin = KotlinLanguage()
    assert kotlin.classify("kotlinx.coroutines.flow") is ImportKind.STANDARD_LIBRARY
    assert kotlin.classify("com.acme.model.User", frozenset({"com.acme.model"})) is ImportKind.INTERNAL
    assert kotlin.is_test_file("/r/src/test/kotlin/UserTest.kt")
    assert not kotlin.is_test_file("/r/src/main/kotlin/User.kt")
