"""URL validation and partition key utilities."""

from urllib.parse import urlparse


UNKNOWN_DOMAIN = "unknown"


class URLValidationError(Exception):
    """URL validation error."""

    pass


def validate_url_scheme(url: str) -> None:
    """Validate URL has allowed scheme (http/https only).

    Args:
        url: URL to validate

    Raises:
        URLValidationError: If URL scheme is not allowed or host is missing
    """
    parsed = urlparse(url)

    if not parsed.scheme:
        raise URLValidationError("URL missing scheme (http:// or https://)")

    if parsed.scheme not in ["http", "https"]:
        raise URLValidationError(
            f"URL scheme '{parsed.scheme}' not allowed. Only http:// and https:// are permitted."
        )

    if not parsed.netloc:
        raise URLValidationError(f"URL missing host: {url}")


def is_valid_url(url: str) -> bool:
    """Check whether a string is a syntactically valid http(s) URL."""
    if not url or any(ch.isspace() for ch in url.strip()):
        return False

    try:
        validate_url_scheme(url.strip())
        # Accessing .port validates the netloc (bad ports, broken IPv6 literals)
        urlparse(url.strip()).port
    except (URLValidationError, ValueError):
        return False

    return True


def domain_key(url: str) -> str:
    """Map a URL to its partition key.

    The key is the lowercased hostname with a leading ``www.`` removed.

    Args:
        url: Bookmark URL

    Returns:
        Domain string, or ``"unknown"`` when the URL has no parseable host

    Example:
        "https://www.github.com/python/cpython" -> "github.com"
    """
    try:
        hostname = urlparse(url.strip()).hostname
    except (AttributeError, ValueError):
        return UNKNOWN_DOMAIN

    if not hostname:
        return UNKNOWN_DOMAIN

    if hostname.startswith("www."):
        hostname = hostname[4:]

    return hostname or UNKNOWN_DOMAIN
