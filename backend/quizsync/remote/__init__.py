"""Authoritative profile stores."""

from .base import ProfileRemote
from .database import DatabaseProfileRemote
from .rest import RestProfileRemote, build_rest_client

__all__ = [
    "DatabaseProfileRemote",
    "ProfileRemote",
    "RestProfileRemote",
    "build_rest_client",
]
