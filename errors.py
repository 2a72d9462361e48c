#!/usr/bin/env python3
"""Common error types shared across modules.

These never escape absolutify(); the tag rewriter catches them and keeps the
original tag text.
"""

from typing import Optional


class AbsolutifyError(ValueError):
    """Base class for references that cannot be resolved.

    Attributes:
        text: The offending URL or attribute value.
        reason: Short human-readable description for logging.
    """

    def __init__(self, text: Optional[str], reason: str = "cannot be resolved"):
        super().__init__(f"{text!r}: {reason}")
        self.text = text
        self.reason = reason


class InvalidReferenceError(AbsolutifyError):
    """Raised when an attribute value is not a valid URI reference."""


class BaseURLError(AbsolutifyError):
    """Raised when the base URL is unusable for merging."""


__all__ = ["AbsolutifyError", "InvalidReferenceError", "BaseURLError"]
