"""
CMS server connection settings
Built once from Config and handed to every component that needs them
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = 'https://cloud.example.tld'
DEFAULT_API_PORT = 443
DEFAULT_RTMP_PORT = 1935
DEFAULT_RTSP_PORT = 6604
DEFAULT_HLS_PORT = 16604


@dataclass(frozen=True)
class ServerConfig:
    """CMS server configuration"""
    server_url: str = DEFAULT_SERVER_URL
    api_port: int = DEFAULT_API_PORT
    rtmp_port: int = DEFAULT_RTMP_PORT
    rtsp_port: int = DEFAULT_RTSP_PORT
    hls_port: int = DEFAULT_HLS_PORT

    def __post_init__(self):
        # Normalise once so every URL join sees the same base
        object.__setattr__(self, 'server_url', self.server_url.rstrip('/'))

    @property
    def hostname(self) -> str:
        """Server host without scheme, port or path (used by streaming links)"""
        host = self.server_url
        for scheme in ('https://', 'http://'):
            if host.startswith(scheme):
                host = host[len(scheme):]
                break
        host = host.split('/')[0]
        return host.split(':')[0]

    @property
    def api_base_url(self) -> str:
        """Base URL for StandardApiAction calls.

        ``api_port`` is appended only when server_url names no port and the
        port is not the scheme default.
        """
        parsed = urlparse(self.server_url)
        if parsed.port is not None:
            return self.server_url
        default_port = 443 if parsed.scheme == 'https' else 80
        if self.api_port in (0, default_port):
            return self.server_url
        netloc = f"{parsed.hostname}:{self.api_port}"
        return parsed._replace(netloc=netloc).geturl()

    @property
    def web_player_url(self) -> str:
        """Server URL with the scheme forced to plain HTTP"""
        return self.server_url.replace('https://', 'http://', 1)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ServerConfig':
        """Build from the loaded config dict (the ``server`` section)"""
        server = config.get('server', {}) if 'server' in config else config
        return cls(
            server_url=server.get('server_url') or DEFAULT_SERVER_URL,
            api_port=int(server.get('api_port') or DEFAULT_API_PORT),
            rtmp_port=int(server.get('rtmp_port') or DEFAULT_RTMP_PORT),
            rtsp_port=int(server.get('rtsp_port') or DEFAULT_RTSP_PORT),
            hls_port=int(server.get('hls_port') or DEFAULT_HLS_PORT),
        )


def get_server_config(config: Optional[Dict[str, Any]] = None) -> ServerConfig:
    """Server settings from config.json / environment (see config.Config)"""
    if config is None:
        from config import Config
        config = Config.load()

    server = ServerConfig.from_config(config)
    logger.debug(f"Using CMS server {server.server_url} "
                 f"(rtsp={server.rtsp_port}, rtmp={server.rtmp_port}, hls={server.hls_port})")
    return server
