"""
Validation utilities.

Shared validation utilities for operator-supplied input.
"""

from typing import Optional
from urllib.parse import urlparse

from shared.errors import ValidationError

# Platforms whose share links are accepted as analysis sources
SUPPORTED_SOURCE_DOMAINS = (
    "tiktok.com",
    "instagram.com",
    "youtube.com",
    "youtu.be",
    "facebook.com",
    "fb.watch",
    "threads.net",
    "vimeo.com",
    "reddit.com",
)

# Direct media links are accepted from any host
DIRECT_MEDIA_EXTENSIONS = (".mp4", ".mov", ".webm", ".m4a", ".mp3", ".wav")


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def validate_source_url(source_url: str) -> str:
    """
    Validate the link an analysis is started from.

    Accepts share links from the supported social platforms and direct
    links to media files.

    Args:
        source_url: URL entered by the operator

    Returns:
        The stripped URL

    Raises:
        ValidationError: If the URL is missing, malformed or unsupported
    """
    if not source_url or not source_url.strip():
        raise ValidationError("Source URL is required")

    source_url = source_url.strip()
    parsed = urlparse(source_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Source URL must be a valid HTTP/HTTPS URL")

    host = parsed.netloc.lower().split(":")[0]
    if any(_host_matches(host, domain) for domain in SUPPORTED_SOURCE_DOMAINS):
        return source_url
    if parsed.path.lower().endswith(DIRECT_MEDIA_EXTENSIONS):
        return source_url

    raise ValidationError(
        "Unsupported source URL. Supported platforms: TikTok, Instagram, YouTube, "
        "Facebook, Threads, Vimeo and Reddit, or a direct link to a media file"
    )


def validate_variant_count(count: int, max_variants: int) -> int:
    """
    Validate the number of variants requested for a batch.

    Raises:
        ValidationError: If count is not an integer in [1, max_variants]
    """
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError("Variant count must be an integer")
    if count < 1:
        raise ValidationError("Variant count must be at least 1")
    if count > max_variants:
        raise ValidationError(
            f"Variant count must be at most {max_variants} (requested: {count})"
        )
    return count


def validate_section_text(text: Optional[str], max_length: int = 1000) -> str:
    """Validate an operator edit of a section's script text."""
    if text is None or not text.strip():
        raise ValidationError("Section text is required")
    text = text.strip()
    if len(text) > max_length:
        raise ValidationError(
            f"Section text must be at most {max_length} characters long "
            f"(current: {len(text)})"
        )
    return text
