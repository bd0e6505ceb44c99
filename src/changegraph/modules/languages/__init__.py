"""Language adapters. See :mod:`.registry` for the extension table."""
