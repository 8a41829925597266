"""Identifier generation."""

import uuid


def generate_job_id() -> str:
    """Generate a collision-free job identifier (also the workspace dir name)."""
    return uuid.uuid4().hex


def generate_request_id() -> str:
    """Generate a short request ID for error tracking."""
    return uuid.uuid4().hex[:12]
