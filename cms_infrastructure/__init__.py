"""
CMS Client Infrastructure
"""
from .http_transport import HTTPTransport, TransportResponse, is_certificate_error, USER_AGENT
from .server_config import ServerConfig, get_server_config
from .input_validator import (
    validate_device_id,
    validate_channel,
    validate_stream,
    validate_av_type,
    validate_port,
    clean_display_text,
)

__all__ = [
    'HTTPTransport',
    'TransportResponse',
    'is_certificate_error',
    'USER_AGENT',
    'ServerConfig',
    'get_server_config',
    # Input validation
    'validate_device_id',
    'validate_channel',
    'validate_stream',
    'validate_av_type',
    'validate_port',
    'clean_display_text',
]
