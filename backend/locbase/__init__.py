"""locbase translation management backend."""
