"""Core infrastructure: configuration, exceptions, retry, error tracking."""
