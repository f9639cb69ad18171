"""Process-level concerns: configuration, logging, metrics, entrypoint."""
