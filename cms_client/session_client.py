"""
CMS Session Client
Authenticated StandardApiAction calls: login, online devices, vehicle info, alarms
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Type, TypeVar, Union
from urllib.parse import urlencode

from pydantic import ValidationError

from cms_infrastructure.http_transport import HTTPTransport, TransportResponse
from cms_infrastructure.server_config import ServerConfig
from .errors import APIResultError, AuthError, CMSError, DecodeError, TransportError
from .models import (
    AlarmResponse,
    ApiResponse,
    CoordSystem,
    DeviceStatusResponse,
    LoginResponse,
    VehicleResponse,
)

logger = logging.getLogger(__name__)

ACTION_LOGIN = 'StandardApiAction_login.action'
ACTION_DEVICE_STATUS = 'StandardApiAction_getDeviceOlStatus.action'
ACTION_QUERY_VEHICLE = 'StandardApiAction_queryUserVehicle.action'
ACTION_VEHICLE_ALARM = 'StandardApiAction_vehicleAlarm.action'
ACTION_REALTIME_VIDEO = 'StandardApiAction_realTimeVedio.action'

R = TypeVar('R', bound=ApiResponse)


@dataclass(frozen=True)
class Session:
    """Login result. The token has no tracked expiry; a non-zero result code
    on a later call is the only sign it is no longer valid."""
    jsession: str
    # Login response was obtained with certificate verification disabled
    insecure: bool = False

    def __str__(self) -> str:
        return self.jsession


SessionLike = Union[Session, str]


def _token(session: SessionLike) -> str:
    return session.jsession if isinstance(session, Session) else str(session)


class CMSSessionClient:
    """
    Client for the CMS StandardApiAction JSON API.

    Each call is a single GET through the transport (which may fall back once
    to unverified TLS). A body with ``result != 0`` is a logical failure even
    though HTTP succeeded. No caching and no retries happen here.
    """

    def __init__(self, config: ServerConfig, transport: HTTPTransport):
        self.config = config
        self.transport = transport

    def action_url(self, action: str) -> str:
        return f"{self.config.api_base_url}/{action}"

    async def _call(self, action: str, params: Dict[str, Any],
                    response_type: Type[R]) -> R:
        """GET ``action`` with ``params`` and decode into ``response_type``.

        Raises:
            TransportError: network/TLS failure
            DecodeError: body is not a JSON object of the expected shape
            APIResultError: ``result`` is not 0
        """
        url = f"{self.action_url(action)}?{urlencode(params)}"
        try:
            raw = await self.transport.fetch(url)
        except CMSError:
            raise
        except Exception as e:
            logger.error(f"HTTP request failed for {action}: {e}")
            raise TransportError(f"{action}: {e}", url=self.action_url(action)) from e

        response = self._decode(action, raw, response_type)

        if response.result != 0:
            logger.warning(f"{action} returned result code {response.result}")
            raise APIResultError(response.result, action)

        return response

    @staticmethod
    def _decode(action: str, raw: TransportResponse, response_type: Type[R]) -> R:
        try:
            data = json.loads(raw.body)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Invalid JSON from {action} (HTTP {raw.status}): {e}")
            raise DecodeError(f"{action}: response is not JSON ({e})", action) from e

        if not isinstance(data, dict):
            raise DecodeError(f"{action}: expected a JSON object, got {type(data).__name__}", action)

        try:
            response = response_type.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected response shape from {action}: {e}")
            raise DecodeError(f"{action}: {e}", action) from e

        if raw.insecure:
            response = response.model_copy(update={'insecure': True})
        return response

    # =========================================================================
    # Session
    # =========================================================================

    async def login(self, account: str, password: str) -> Session:
        """Log in and return the session token.

        Raises:
            AuthError: on a non-zero result, transport failure or bad body.
                No token is returned in any failure case.
        """
        try:
            response = await self._call(
                ACTION_LOGIN,
                {'account': account, 'password': password},
                LoginResponse,
            )
        except APIResultError as e:
            raise AuthError(f"Login failed (result code {e.code})", code=e.code) from e
        except CMSError as e:
            raise AuthError(f"Login failed: {e}") from e

        if not response.jsession:
            raise AuthError("Login failed: server returned no jsession", code=response.result)

        if response.insecure:
            logger.warning(f"Logged into {self.config.server_url} over an UNVERIFIED TLS connection")
        else:
            logger.info(f"✓ Logged into CMS server: {self.config.server_url}")
        return Session(jsession=response.jsession, insecure=response.insecure)

    # =========================================================================
    # Devices and vehicles
    # =========================================================================

    async def list_devices(self, session: SessionLike) -> DeviceStatusResponse:
        """Online devices (``onlines``: vehicle id / device id pairs)"""
        response = await self._call(
            ACTION_DEVICE_STATUS,
            {'jsession': _token(session)},
            DeviceStatusResponse,
        )
        logger.debug(f"{len(response.onlines)} online devices")
        return response

    async def get_vehicle_info(self, session: SessionLike) -> VehicleResponse:
        """Companies and vehicles (with nested device lists) visible to the account"""
        response = await self._call(
            ACTION_QUERY_VEHICLE,
            {'jsession': _token(session)},
            VehicleResponse,
        )
        logger.debug(f"{len(response.companys)} companies, {len(response.vehicles)} vehicles")
        return response

    # =========================================================================
    # Alarms
    # =========================================================================

    async def get_alarms(self, session: SessionLike, device_id: str = '',
                         coord_system: int = CoordSystem.WGS84) -> AlarmResponse:
        """Fetch alarms.

        Args:
            session: Session or raw jsession token
            device_id: DevIDNO, or '' for all devices
            coord_system: 0=WGS84, 1=Google (GCJ-02), 2=Baidu (BD09);
                re-projection is done by the server
        """
        try:
            to_map = CoordSystem(int(coord_system))
        except ValueError:
            raise ValueError(f"coord_system must be 0, 1 or 2, got {coord_system!r}") from None

        response = await self._call(
            ACTION_VEHICLE_ALARM,
            {'jsession': _token(session), 'DevIDNO': device_id or '', 'toMap': int(to_map)},
            AlarmResponse,
        )
        logger.debug(f"{len(response.alarmlist)} alarms for device={device_id or 'ALL'}")
        return response
