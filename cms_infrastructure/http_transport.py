"""
HTTP transport for the CMS client
Single GET primitive with one insecure retry on certificate-trust failures
"""
import asyncio
import logging
import ssl
from dataclasses import dataclass
from typing import Dict, Any, Optional

import aiohttp

logger = logging.getLogger(__name__)

USER_AGENT = 'CMSLinkClient/1.0'

# Failures that mean "server certificate not trusted" (self-signed deployments)
CERTIFICATE_ERRORS = (
    aiohttp.ClientConnectorCertificateError,
    ssl.SSLCertVerificationError,
)


def is_certificate_error(exc: BaseException) -> bool:
    """True if the exception is a TLS trust failure (unknown CA, bad chain)."""
    return isinstance(exc, CERTIFICATE_ERRORS)


@dataclass(frozen=True)
class TransportResponse:
    """Raw response body plus how it was obtained"""
    body: bytes
    status: int
    # True when certificate verification was disabled to get this response
    insecure: bool = False


class HTTPTransport:
    """
    GET-with-fallback over a shared aiohttp session.

    - Fixed User-Agent header
    - On a certificate-trust error only, retries once with verification off
    - Any other failure, or a failure of the retry, propagates unchanged
    - No timeout override: aiohttp's default client timeout applies
    """

    def __init__(self, user_agent: str = USER_AGENT):
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()
        self._request_count = 0
        self._error_count = 0
        self._insecure_count = 0

    async def __aenter__(self) -> 'HTTPTransport':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session"""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    headers={'User-Agent': self.user_agent}
                )
            return self._session

    async def close(self):
        """Close the aiohttp session gracefully"""
        async with self._session_lock:
            if self._session and not self._session.closed:
                try:
                    await self._session.close()
                except Exception as e:
                    logger.debug(f"Error closing session: {e}")
                finally:
                    self._session = None

    async def _request(self, url: str, verify_ssl: bool) -> TransportResponse:
        """Issue one GET. ``verify_ssl=False`` disables certificate checks."""
        session = await self._get_session()
        # ssl=None keeps aiohttp's default verifying context
        ssl_option = None if verify_ssl else False
        async with session.get(url, ssl=ssl_option) as response:
            body = await response.read()
            return TransportResponse(body=body, status=response.status, insecure=not verify_ssl)

    async def fetch(self, url: str) -> TransportResponse:
        """GET ``url``, falling back once to an unverified TLS connection.

        Raises:
            Whatever the underlying request raised; after a fallback, the
            retry's exception rather than the original certificate error.
        """
        self._request_count += 1
        try:
            return await self._request(url, verify_ssl=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not is_certificate_error(e):
                self._error_count += 1
                raise
            logger.warning(
                f"TLS certificate not trusted for {_redact(url)} ({e}); "
                f"retrying once with certificate verification disabled"
            )

        try:
            response = await self._request(url, verify_ssl=False)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._error_count += 1
            raise

        self._insecure_count += 1
        logger.warning(f"Response for {_redact(url)} obtained WITHOUT certificate verification")
        return response

    async def get(self, url: str) -> bytes:
        """GET ``url`` and return the body (see fetch for failure policy)."""
        response = await self.fetch(url)
        return response.body

    def get_stats(self) -> Dict[str, Any]:
        return {
            'requests': self._request_count,
            'errors': self._error_count,
            'insecure_responses': self._insecure_count,
        }


def _redact(url: str) -> str:
    """Drop the query string so passwords and session tokens stay out of logs"""
    return url.split('?', 1)[0]
