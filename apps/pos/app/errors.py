"""
Error taxonomy for the POS backend.

Every error carries the HTTP status the bridge answers with, so route handlers
never translate domain failures by hand. PrintError never escapes the print
sink; it exists so the sink can treat its own delivery failures uniformly.
"""
from __future__ import annotations


class PosError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PosError):
    status_code = 400


class NotFoundError(PosError):
    status_code = 404


class ConflictError(PosError):
    status_code = 409


class PersistenceError(PosError):
    status_code = 500


class RenderError(PosError):
    status_code = 500


class PrintError(PosError):
    status_code = 502
