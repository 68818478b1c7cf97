"""Activity lifecycle and enrollment domain."""
