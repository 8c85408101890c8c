"""
Repeating Task Engine Errors

Error taxonomy shared by the recurrence evaluator, the rule store and the
materializer. Every error carries a stable ``code`` so the HTTP layer can map
it without inspecting messages.

- InvalidRule: malformed or impossible rule definition
- NotFound: missing resource, or one owned by someone else
- AlreadySpawned: lost materialization race (internal only)
- PersistenceFailure: the underlying store failed
"""

from typing import Any, Dict, Optional


class RecurrenceError(Exception):
    """Base exception for repeating task engine errors"""
    code = "RECURRENCE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidRule(RecurrenceError):
    """Rule definition is malformed or semantically impossible."""
    code = "INVALID_RULE"


class NotFound(RecurrenceError):
    """Rule or task does not exist for the requesting owner.

    Also raised for resources owned by another user so that their existence
    is never revealed.
    """
    code = "NOT_FOUND"


class AlreadySpawned(RecurrenceError):
    """A concurrent materialization already handled this occurrence."""
    code = "ALREADY_SPAWNED"


class PersistenceFailure(RecurrenceError):
    """The record store failed; the original error is chained as __cause__."""
    code = "PERSISTENCE_FAILURE"


def create_error_response(error: RecurrenceError) -> Dict[str, Any]:
    """
    Create a standardized error response

    Args:
        error: The RecurrenceError to convert

    Returns:
        Standardized error response dictionary
    """
    return {
        "success": False,
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details
        }
    }
