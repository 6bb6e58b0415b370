import json
from typing import Any, Dict, List, Optional, Union

import pytest

from cms_client import CMSSessionClient, Session
from cms_infrastructure import ServerConfig, TransportResponse


class FakeTransport:
    """Replays canned bodies keyed by action name and records requested URLs"""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, insecure: bool = False):
        self.responses = responses or {}
        self.insecure = insecure
        self.urls: List[str] = []

    async def fetch(self, url: str) -> TransportResponse:
        self.urls.append(url)
        action = url.split('?', 1)[0].rsplit('/', 1)[-1]
        reply: Union[Exception, bytes, dict] = self.responses[action]
        if isinstance(reply, Exception):
            raise reply
        body = reply if isinstance(reply, bytes) else json.dumps(reply).encode()
        return TransportResponse(body=body, status=200, insecure=self.insecure)


@pytest.fixture
def server_config():
    return ServerConfig(server_url='https://cms.test.local')


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def client(server_config, fake_transport):
    return CMSSessionClient(server_config, fake_transport)


@pytest.fixture
def session():
    return Session(jsession='tok')
