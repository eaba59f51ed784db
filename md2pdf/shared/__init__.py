"""Shared infrastructure: errors, logging, ids, request context."""
