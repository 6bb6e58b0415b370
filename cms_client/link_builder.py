"""
Streaming link builder
RTSP / RTMP / HLS live-video URLs and the web player / live API link set
"""
import logging
from dataclasses import dataclass
from typing import Dict
from urllib.parse import quote

from cms_infrastructure.input_validator import (
    AV_TYPE_VIDEO,
    validate_av_type,
    validate_channel,
    validate_device_id,
    validate_port,
    validate_stream,
)
from cms_infrastructure.server_config import ServerConfig
from .session_client import ACTION_REALTIME_VIDEO

logger = logging.getLogger(__name__)

HLS_REQUEST_REALTIME = 1

PLAYER_PATH = '808gps/open/player/video.html'


@dataclass(frozen=True)
class RTSPLinkOptions:
    """Zero port / zero AVType mean "use the default"."""
    server_host: str = ''
    server_port: int = 0
    jsession: str = ''
    dev_idno: str = ''
    channel: int = 0            # starts at 0
    stream: int = 0             # 0=main, 1=sub
    av_type: int = 0            # 1=live video, 2=audio listen


@dataclass(frozen=True)
class RTMPLinkOptions:
    server_host: str = ''
    server_port: int = 0
    jsession: str = ''
    dev_idno: str = ''
    channel: int = 0
    stream: int = 0
    av_type: int = 0


@dataclass(frozen=True)
class HLSLinkOptions:
    """HLS serves H.264 only."""
    server_host: str = ''
    server_port: int = 0
    jsession: str = ''
    dev_idno: str = ''
    channel: int = 0
    stream: int = 0
    request_type: int = 0       # 1=real-time video


class LinkBuilder:
    """Builds media URLs; ports and host default to the server configuration."""

    def __init__(self, config: ServerConfig):
        self.config = config

    def _host(self, server_host: str) -> str:
        return server_host.strip() or self.config.hostname

    def _media_link(self, scheme: str, default_port: int, opts) -> str:
        port = validate_port(opts.server_port) or default_port
        av_type = validate_av_type(opts.av_type) or AV_TYPE_VIDEO
        return (
            f"{scheme}://{self._host(opts.server_host)}:{port}/3/3"
            f"?AVType={av_type}&jsession={opts.jsession}"
            f"&DevIDNO={validate_device_id(opts.dev_idno)}"
            f"&Channel={validate_channel(opts.channel)}"
            f"&Stream={validate_stream(opts.stream)}"
        )

    def rtsp_link(self, opts: RTSPLinkOptions) -> str:
        return self._media_link('rtsp', self.config.rtsp_port, opts)

    def rtmp_link(self, opts: RTMPLinkOptions) -> str:
        return self._media_link('rtmp', self.config.rtmp_port, opts)

    def hls_link(self, opts: HLSLinkOptions) -> str:
        port = validate_port(opts.server_port) or self.config.hls_port
        request_type = opts.request_type or HLS_REQUEST_REALTIME
        if request_type < 0:
            raise ValueError(f"HLS request type must be positive: {request_type}")
        return (
            f"https://{self._host(opts.server_host)}:{port}/hls/"
            f"{request_type}_{validate_device_id(opts.dev_idno)}"
            f"_{validate_channel(opts.channel)}_{validate_stream(opts.stream)}.m3u8"
            f"?jsession={opts.jsession}"
        )

    def live_api_base_url(self) -> str:
        return f"{self.config.api_base_url}/{ACTION_REALTIME_VIDEO}"

    def player_links(self, jsession: str, did: str, vid: str,
                     account: str, password: str) -> Dict[str, str]:
        """Web player (by device id / by vehicle id) and live API preview URLs.

        The web player is always addressed over plain HTTP and authenticates
        with the account credentials embedded in the query string.
        """
        player = f"{self.config.web_player_url}/{PLAYER_PATH}"
        credentials = f"account={quote(account, safe='')}&password={quote(password, safe='')}"
        live_api = self.live_api_base_url()
        return {
            'Web Player ID': f"{player}?lang=en&devIdno={quote(did, safe='')}&{credentials}",
            'Web Player VI': f"{player}?lang=en&vehiIdno={quote(vid, safe='')}&{credentials}",
            'Live API': f"{live_api}?jsession={jsession}&DevIDNO={quote(did, safe='')}&Chn=1&Sec=300&Label=test",
        }


def hls_video_tag(hls_url: str, width: int = 352, height: int = 288) -> str:
    """HTML5 <video> snippet that plays an HLS link."""
    return (
        f'<video controls preload="none" width="{width}" height="{height}" data-setup="{{}}">\n'
        f'    <source src="{hls_url}" type="application/x-mpegURL">\n'
        f'</video>'
    )
