"""Request-scoped translation services."""
