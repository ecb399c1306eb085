"""Year configuration schema, loader and validation helpers."""
