"""
Local (non-remote) failures of the seeding pipeline.

Remote failures live in `core.opentdb` (OpenTDBError, RemoteProtocolError).
"""

from __future__ import annotations


class SeedingError(RuntimeError):
    pass


class ReferenceLookupError(SeedingError):
    """
    An incoming question names a difficulty/category/type unknown locally.
    """

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} '{name}' not found")


class PersistenceError(SeedingError):
    """
    The database rejected a statement (bad text encoding, lost row, ...).
    """


class PersistenceConflictError(PersistenceError):
    """
    A create/update hit a unique constraint.
    """


class AnswerResolutionError(SeedingError):
    pass


class InvalidQuestionError(SeedingError):
    pass


class TokenAcquisitionError(SeedingError):
    """
    No session token could be obtained; nothing can be fetched without one.
    """
