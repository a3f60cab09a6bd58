"""Domain models (value objects and small entities)."""
