"""
Error types raised while building a site.

Fatal problems propagate out of the builder; recoverable ones are
recorded on the build report and printed as diagnostics.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
CONFIG_ERROR = 66
DATA_ERROR = 70


class SiteError(Exception):
    """Base class for build errors that carry an exit code."""

    exit_code = GENERAL_ERROR

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.path}: {self.message}"
        return self.message


class ContentError(SiteError):
    """A content file that cannot be used; the build skips it."""

    exit_code = DATA_ERROR


class MalformedFrontMatter(ContentError):
    """Front matter that opens but never closes, or does not parse."""


class UnreadableContent(ContentError):
    """A content file that is not valid UTF-8."""


class TemplateNotFound(SiteError):
    """A layout named by content or by another layout does not exist."""

    def __init__(self, name: str, path: Optional[Path] = None, message: str = ""):
        super().__init__(message or f"Layout not found: {name}", path)
        self.name = name


class LayoutCycle(TemplateNotFound):
    def __init__(self, chain: list[str]):
        super().__init__(chain[-1], message=f"Layout cycle: {' -> '.join(chain)}")
        self.chain = chain


class ConfigError(SiteError):
    exit_code = CONFIG_ERROR


class SiteWarning(UserWarning):
    """Problems that are reported but never stop a build."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.path}: {self.message}"
        return self.message


class UnresolvedAsset(SiteWarning):
    """A referenced asset (such as a header image) could not be found."""

    def __init__(self, asset: str, path: Optional[Path] = None):
        super().__init__(f"Asset not found: {asset}", path)
        self.asset = asset


class InvalidDate(SiteWarning):
    def __init__(self, value: object, fallback: str, path: Optional[Path] = None):
        super().__init__(f"Unrecognized date {value!r}; using {fallback}", path)
        self.value = value


class RenamedOutput(SiteWarning):
    """A slug was already taken, so the entry was written under another name."""

    def __init__(self, slug: str, renamed: str, path: Optional[Path] = None):
        super().__init__(f"Slug {slug!r} is taken; written as {renamed}", path)
        self.slug = slug
        self.renamed = renamed
