"""Error taxonomy shared by the database layer, loaders and pipeline stages."""

from __future__ import annotations


class ForgeError(Exception):
    """Base class for every failure raised by a pipeline stage."""


class FilesystemError(ForgeError):
    """Raised when a database file cannot be deleted or renamed."""


class DatabaseError(ForgeError):
    """Raised when a database cannot be opened or is corrupt."""


class SchemaError(ForgeError):
    """Raised on schema version mismatch or when the schema cannot be applied."""


class LoadError(ForgeError):
    """Raised for malformed domain metadata or template packages."""


class SessionError(ForgeError):
    """Raised when a session or its package bindings cannot be created."""


class GenerationError(ForgeError):
    """Raised when a template fails to render or an output file cannot be written."""


class ContextError(ForgeError):
    """Raised when a stage runs out of order or tries to overwrite context state."""


__all__ = [
    "ContextError",
    "DatabaseError",
    "FilesystemError",
    "ForgeError",
    "GenerationError",
    "LoadError",
    "SchemaError",
    "SessionError",
]
