"""
API Services Layer.

Database-backed operations behind the HTTP routes and background workers.
"""

from api.services.applications import ApplicationService
from api.services.notes import NoteService

__all__ = [
    "ApplicationService",
    "NoteService",
]
