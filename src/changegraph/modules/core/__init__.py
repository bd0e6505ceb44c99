"""Language-independent engine: imports model, indexes, resolution, graph and build."""
