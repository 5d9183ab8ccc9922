"""Exception types raised by mdconf."""

from __future__ import annotations


class MdConfError(RuntimeError):
    """Base class for mdconf failures surfaced to the caller."""


class ConfigError(MdConfError):
    """Raised when the configuration file cannot be parsed."""


class NoDocumentsError(MdConfError):
    """Raised when no Markdown documents can be found to scan."""


class EmptyDocumentsError(MdConfError):
    """Raised when every discovered document is blank."""


class CompileError(MdConfError):
    """Raised when a block fails every compile strategy.

    ``error`` is the failure from the first strategy, which is the one worth
    showing to the author.
    """

    def __init__(self, source: str, error: SyntaxError) -> None:
        super().__init__(f"{error.__class__.__name__}: {error}")
        self.source = source
        self.error = error


__all__ = [
    "CompileError",
    "ConfigError",
    "EmptyDocumentsError",
    "MdConfError",
    "NoDocumentsError",
]
