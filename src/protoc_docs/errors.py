from __future__ import annotations


class ProtocDocsError(Exception):
    """Base class for every fatal error raised while generating docs."""


class StructuralError(ProtocDocsError):
    """Raised when the descriptor input is malformed or incomplete."""


class CollisionError(ProtocDocsError):
    """Raised when two entities share one fully-qualified name."""


class ContentError(ProtocDocsError):
    """Raised when a file lacks the data needed to derive its page route."""


class TemplateError(ProtocDocsError):
    """Raised when a template cannot be compiled or references a missing binding."""


class OptionsError(ProtocDocsError):
    """Raised when the generator options are invalid."""
