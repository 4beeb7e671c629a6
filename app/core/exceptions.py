"""
Exception hierarchy for the mission engine.

Only caller bugs and exhausted retries surface from the services;
external-service failures are absorbed and replaced by defaults.
"""


class MissionEngineError(Exception):
    """Base class for mission engine errors."""


class InvalidRequestError(MissionEngineError, ValueError):
    """Caller supplied malformed input."""


class InvalidFeedbackError(InvalidRequestError):
    """Feedback payload is malformed (e.g. rating outside 1-5)."""


class MissionNotFoundError(MissionEngineError, LookupError):
    """Mission does not exist or belongs to another user."""


class SeasonContentionError(MissionEngineError):
    """Season creation kept losing the active-lock race; retry later."""


class TextGenerationError(MissionEngineError):
    """The text-generation collaborator produced no usable output."""


class ScoringUnavailableError(MissionEngineError):
    """The scoring collaborator could not be reached or answered badly."""
