"""
Error taxonomy shared by the storage layer, the script service and the API.
Each error carries the HTTP status the API layer responds with.
"""
from __future__ import annotations


class ScriptError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = str(message)


class ValidationError(ScriptError):
    """Bad or missing input the caller can correct."""

    status_code = 400


class ConflictError(ScriptError):
    """The client name is already used by a live script."""

    status_code = 400


class NotFoundError(ScriptError):
    status_code = 404


class StorageError(ScriptError):
    """Disk failure while reading or rewriting persisted state."""

    status_code = 500


class DecodeError(StorageError):
    """A spreadsheet is missing, corrupt, unsupported or holds no data rows."""
