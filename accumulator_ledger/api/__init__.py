"""Read-only HTTP query surface."""
