"""
ID generation helpers.
"""

import secrets
import time
import uuid


def generate_request_id() -> str:
    """Generate a request ID for tracing."""
    return uuid.uuid4().hex


def generate_render_id(file_stem: str = "markdown") -> str:
    """
    Generate a render job ID in the same shape browser clients use:
    ``<fileName>-<epoch ms>-<random>``.
    """
    return f"{file_stem}-{epoch_ms()}-{secrets.token_hex(3)}"


def epoch_ms() -> int:
    """Current wall clock time in milliseconds."""
    return int(time.time() * 1000)
