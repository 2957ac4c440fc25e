"""Persistence backends: memory, redis, object storage."""
