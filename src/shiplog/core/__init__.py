"""Core domain: buffering, batching and committing of log payloads."""
