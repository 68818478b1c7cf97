"""Infrastructure adapters: database pool, authentication."""
