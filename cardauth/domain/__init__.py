"""Domain entities, errors and pure helpers (no I/O)."""
