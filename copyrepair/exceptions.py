"""Exceptions raised by the repair engine."""


class CopyRepairError(Exception):
    """Base class for all copyrepair errors."""
    pass


class GenerationFailure(CopyRepairError):
    """
    The text generator could not produce a draft.

    Covers transport, authentication and quota errors as well as empty or
    malformed responses. Fatal on the first attempt of a session, retried by
    moving to the next attempt afterwards.
    """

    def __init__(self, message: str, attempt: int | None = None):
        super().__init__(message)
        self.attempt = attempt


class KnowledgeLoadError(CopyRepairError):
    """The rulebook knowledge directory could not be read."""
    pass
