"""Core primitives: configuration, logging, errors, cancellation, URL validation."""
