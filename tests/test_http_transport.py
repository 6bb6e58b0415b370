import ssl

import aiohttp
import pytest

from cms_infrastructure import HTTPTransport, TransportResponse, is_certificate_error


class ScriptedRequests:
    """Stands in for HTTPTransport._request; pops one outcome per call"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def __call__(self, url, verify_ssl):
        self.calls.append((url, verify_ssl))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return TransportResponse(body=outcome, status=200, insecure=not verify_ssl)


def _cert_error():
    return ssl.SSLCertVerificationError(1, 'certificate verify failed: self-signed certificate')


@pytest.fixture
def transport():
    return HTTPTransport()


async def test_success_uses_verified_tls(transport, monkeypatch):
    requests = ScriptedRequests(b'{"result": 0}')
    monkeypatch.setattr(transport, '_request', requests)

    response = await transport.fetch('https://cms/x?password=secret')

    assert response.body == b'{"result": 0}'
    assert not response.insecure
    assert requests.calls == [('https://cms/x?password=secret', True)]
    assert transport.get_stats() == {'requests': 1, 'errors': 0, 'insecure_responses': 0}


async def test_certificate_error_retries_once_without_verification(transport, monkeypatch, caplog):
    requests = ScriptedRequests(_cert_error(), b'ok')
    monkeypatch.setattr(transport, '_request', requests)

    response = await transport.fetch('https://cms/x?password=secret')

    assert response.body == b'ok'
    assert response.insecure
    assert [verify for _, verify in requests.calls] == [True, False]
    assert transport.get_stats()['insecure_responses'] == 1
    assert any(record.levelname == 'WARNING' for record in caplog.records)
    assert 'secret' not in caplog.text


async def test_retry_failure_propagates_retry_error(transport, monkeypatch):
    retry_error = aiohttp.ClientConnectionError('connection reset on retry')
    requests = ScriptedRequests(_cert_error(), retry_error)
    monkeypatch.setattr(transport, '_request', requests)

    with pytest.raises(aiohttp.ClientConnectionError) as exc_info:
        await transport.fetch('https://cms/x')

    assert exc_info.value is retry_error
    assert len(requests.calls) == 2
    assert transport.get_stats()['errors'] == 1


async def test_non_certificate_error_is_not_retried(transport, monkeypatch):
    requests = ScriptedRequests(aiohttp.ClientConnectionError('refused'), b'never')
    monkeypatch.setattr(transport, '_request', requests)

    with pytest.raises(aiohttp.ClientConnectionError):
        await transport.fetch('https://cms/x')

    assert requests.calls == [('https://cms/x', True)]
    assert transport.get_stats()['insecure_responses'] == 0


async def test_generic_ssl_error_is_not_retried(transport, monkeypatch):
    requests = ScriptedRequests(ssl.SSLError('handshake failure'), b'never')
    monkeypatch.setattr(transport, '_request', requests)

    with pytest.raises(ssl.SSLError):
        await transport.fetch('https://cms/x')

    assert len(requests.calls) == 1


async def test_get_returns_body(transport, monkeypatch):
    monkeypatch.setattr(transport, '_request', ScriptedRequests(b'body'))
    assert await transport.get('https://cms/x') == b'body'


def test_is_certificate_error():
    assert is_certificate_error(_cert_error())
    assert not is_certificate_error(ssl.SSLError('other'))
    assert not is_certificate_error(ValueError('x'))


async def test_close_without_session(transport):
    await transport.close()
    async with HTTPTransport() as scoped:
        assert scoped.user_agent == 'CMSLinkClient/1.0'
