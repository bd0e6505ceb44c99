import logging

from changegraph.modules.core.builder import build_dependency_graph
from changegraph.modules.core.content import mapping_reader
from changegraph.modules.core.imports import ImportKind
from changegraph.modules.languages.csharp import CSharpLanguage, find_project_dir, scope_key


def _listing(tree):
    def listing(directory):
        if directory not in tree:
            raise FileNotFoundError(directory)
        return tree[directory]

    return listing


def test_scope_key():
    assert scope_key("/r/App", "App.Models") == "/r/App::App.Models"


def test_find_project_dir_walks_up_to_csproj():
    listing = _listing({"/r/App": ["App.csproj", "Program.cs"], "/r/App/Models": ["User.cs"], "/r": [], "/": []})
    assert find_project_dir("/r/App/Models", set(), listing) == "/r/App"


def test_find_project_dir_prefers_supplied_projects():
    def listing(directory):
        raise AssertionError("disk should not be consulted")

    assert find_project_dir("/r/Lib", {"/r/Lib"}, listing) == "/r/Lib"


def test_find_project_dir_defaults_to_own_directory():
    assert find_project_dir("/x/y", set(), _listing({})) == "/x/y"


def test_find_project_dir_logs_unlistable_directories(caplog):
    listing = _listing({"/r": ["App.csproj"], "/": []})
    with caplog.at_level(logging.DEBUG, logger="changegraph.modules.languages.csharp"):
        assert find_project_dir("/r/gone", set(), listing) == "/r"
    assert "cannot list /r/gone" in caplog.text


def test_classify():
    cs = CSharpLanguage()
    assert cs.classify("System.Collections.Generic") is ImportKind.STANDARD_LIBRARY
    assert cs.classify("Microsoft.Extensions.Logging") is ImportKind.STANDARD_LIBRARY
    assert cs.classify("App.Models", frozenset({"App.Models"})) is ImportKind.INTERNAL
    assert cs.classify("Newtonsoft.Json") is ImportKind.EXTERNAL


def test_is_test_file():
    cs = CSharpLanguage()
    assert cs.is_test_file("/r/App.Tests/UserTests.cs")
    assert cs.is_test_file("/r/Tests/Helpers.cs")
    assert not cs.is_test_file("/r/App/User.cs")


FILES = {
    "/r/App/App.csproj": "<Project Sdk=\"Microsoft.NET.Sdk\" />\n",
    "/r/App/Models/User.cs": "namespace App.Models;\n\npublic class User\n{\n}\n",
    "/r/App/Models/Order.cs": (
        "namespace App.Models;\n\npublic class Order\n{\n    public User Owner { get; set; }\n}\n"
    ),
    "/r/App/Models/Audit.cs": "namespace App.Models\n{\n    public class Audit\n    {\n    }\n}\n",
    "/r/App/Program.cs": """using System;
using App.Models;

namespace App;

public class Program
{
    public static void Main()
    {
        var user = new User();
        Console.WriteLine(user);
    }
}
""",
}


def test_using_links_only_referenced_types():
    graph = build_dependency_graph(list(FILES), mapping_reader(FILES)).adjacency()
    assert graph["/r/App/Program.cs"] == ["/r/App/Models/User.cs"]
    assert graph["/r/App/Models/Order.cs"] == ["/r/App/Models/User.cs"]
    assert "/r/App/Models/Audit.cs" not in graph
