"""HTTP transport for provider requests."""
