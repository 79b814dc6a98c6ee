"""Base exception for the lockbump pipeline.

Each stage defines its own error types next to the code that raises them;
they all derive from LockbumpError so the CLI can report any pipeline
failure uniformly.
"""

from typing import Any, Dict, Optional


class LockbumpError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        message: Human-readable error description.
        context: Structured fields describing the failure, suitable for
                 passing to a logger as keyword arguments.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)
