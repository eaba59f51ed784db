"""
Shared types.
"""

from dataclasses import dataclass


@dataclass
class RequestContext:
    """Per-request tracing context, attached by the HTTP middleware."""
    request_id: str
    render_id: str | None = None
