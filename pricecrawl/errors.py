"""Custom exception types for the repair price crawler."""

from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Base class for crawl failures that carry hierarchy context."""

    default_message = "Crawl step failed."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        manufacturer: Optional[str] = None,
        device: Optional[str] = None,
        action: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.manufacturer = manufacturer
        self.device = device
        self.action = action
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.url:
            context_parts.append(f"url={self.url}")
        if self.manufacturer:
            context_parts.append(f"manufacturer={self.manufacturer}")
        if self.device:
            context_parts.append(f"device={self.device}")
        if self.action:
            context_parts.append(f"action={self.action}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class PageLoadError(CrawlError):
    """Raised when the calculator page or its form fails to load."""

    default_message = "Failed to load page."


class NodeTimeoutError(CrawlError):
    """Raised when a select option never populates the next level in time."""

    default_message = "Timed out waiting for the next level to populate."


class ConfigError(ValueError):
    """Raised when crawler configuration values are invalid."""


class CatalogImportError(RuntimeError):
    """Raised when the parts catalog CSV cannot be imported."""
