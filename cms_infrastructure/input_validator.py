"""
Input validation for streaming link parameters
Rejects values that would produce a malformed or misleading media URL
"""
import re
import logging
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Device IDs
# =============================================================================

# CMS Device ID pattern: alphanumeric (may contain letters)
CMS_DEVICE_ID_PATTERN = re.compile(r'^[a-zA-Z0-9\-\_]+$')


def validate_device_id(device_id: Any) -> str:
    """
    Validate a DevIDNO used inside a URL path or query.

    Returns:
        Stripped device id

    Raises:
        ValueError: empty or containing characters outside [A-Za-z0-9_-]
    """
    device_str = str(device_id).strip() if device_id is not None else ''

    if not device_str:
        raise ValueError("Device id is required")

    if not CMS_DEVICE_ID_PATTERN.match(device_str):
        raise ValueError(f"Invalid device id format: {device_id!r}")

    return device_str


# =============================================================================
# Stream selectors
# =============================================================================

STREAM_MAIN = 0
STREAM_SUB = 1

AV_TYPE_VIDEO = 1
AV_TYPE_AUDIO = 2


def validate_channel(channel: Any) -> int:
    """Channel numbers start at 0."""
    try:
        value = int(channel)
    except (ValueError, TypeError):
        raise ValueError(f"Channel must be an integer: {channel!r}") from None
    if value < 0:
        raise ValueError(f"Channel must be >= 0: {value}")
    return value


def validate_stream(stream: Any) -> int:
    """0 = main stream, 1 = sub stream."""
    try:
        value = int(stream)
    except (ValueError, TypeError):
        raise ValueError(f"Stream must be an integer: {stream!r}") from None
    if value not in (STREAM_MAIN, STREAM_SUB):
        raise ValueError(f"Stream must be 0 (main) or 1 (sub): {value}")
    return value


def validate_av_type(av_type: Any) -> int:
    """0 means "use default"; otherwise 1 = live video, 2 = audio listen."""
    try:
        value = int(av_type)
    except (ValueError, TypeError):
        raise ValueError(f"AVType must be an integer: {av_type!r}") from None
    if value not in (0, AV_TYPE_VIDEO, AV_TYPE_AUDIO):
        raise ValueError(f"AVType must be 1 (video) or 2 (audio): {value}")
    return value


def validate_port(port: Any) -> int:
    """0 means "use configured default"."""
    try:
        value = int(port)
    except (ValueError, TypeError):
        raise ValueError(f"Port must be an integer: {port!r}") from None
    if not 0 <= value < 65536:
        raise ValueError(f"Port out of range: {value}")
    return value


# =============================================================================
# Strings
# =============================================================================

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_LINE_BREAKS = re.compile(r'\s*[\r\n]+\s*')


def clean_display_text(value: Any, max_length: int = 1024) -> str:
    """
    Make a server-supplied string safe for a one-line report field.

    Control characters are dropped, line breaks become single spaces and the
    result is cut to ``max_length`` characters ("..." marks a cut).
    None becomes ''.
    """
    if value is None:
        return ''

    text = _LINE_BREAKS.sub(' ', str(value).strip())
    text = _CONTROL_CHARS.sub('', text)

    if len(text) > max_length:
        text = text[:max(max_length - 3, 0)] + '...'
    return text
