"""Utility modules for the Code Runner API."""

from .logging import setup_logging
from .id_generator import generate_job_id, generate_request_id

__all__ = [
    "setup_logging",
    "generate_job_id",
    "generate_request_id",
]
