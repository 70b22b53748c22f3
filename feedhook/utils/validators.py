"""
FeedHook Input Validators
========================

URL validation helpers shared by configuration, link rendering and
image extraction.
"""

from urllib.parse import urlparse
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation utilities."""

    # Allowed schemes for feeds, webhooks and rendered links
    ALLOWED_SCHEMES = {'http', 'https'}

    @classmethod
    def is_http_url(cls, url: Optional[str]) -> bool:
        """Check that ``url`` is an absolute http(s) URL with a hostname."""
        if not url or not isinstance(url, str):
            return False

        try:
            parsed = urlparse(url.strip())
        except ValueError:
            return False

        return parsed.scheme.lower() in cls.ALLOWED_SCHEMES and bool(parsed.netloc)

    @classmethod
    def is_absolute_url(cls, url: Optional[str]) -> bool:
        """Check that ``url`` is syntactically an absolute URL (scheme and host)."""
        if not url or not isinstance(url, str):
            return False

        candidate = url.strip()
        if any(ch.isspace() for ch in candidate):
            return False

        try:
            parsed = urlparse(candidate)
            # Accessing port validates the netloc's port component
            parsed.port
        except ValueError:
            return False

        return bool(parsed.scheme) and bool(parsed.netloc)

    @classmethod
    def validate_http_url(cls, url: str, field_name: str = "url") -> str:
        """Validate an http(s) URL and return it stripped.

        Raises:
            ValidationError: If URL is missing or not http(s)
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name=field_name
            )

        if not cls.is_http_url(url):
            raise ValidationError(
                f"'{url}' is not a valid http(s) URL",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name=field_name
            )

        return url.strip()
