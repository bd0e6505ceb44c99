"""changegraph modules.

Modules:
- core: extraction model, resolution algorithms, graph assembly and output
- languages: per-language adapters and the registry
"""

# Lazy imports to avoid circular dependencies between core and languages
def __getattr__(name: str):
    if name == "core":
        from . import core
        return core
    elif name == "languages":
        from . import languages
        return languages
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = ["core", "languages"]
