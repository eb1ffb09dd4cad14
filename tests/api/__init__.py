"""HTTP-level tests for the election API."""
