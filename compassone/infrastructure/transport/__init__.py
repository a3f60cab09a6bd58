"""HTTP transport adapters."""
