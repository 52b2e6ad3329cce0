"""Facades over the notes HTTP API."""

from notesync.api.notes import NotesApi, unwrap_envelope

__all__ = ["NotesApi", "unwrap_envelope"]
