from urllib.parse import parse_qs, urlsplit

import aiohttp
import pytest

from cms_client import (
    APIResultError,
    AuthError,
    CMSSessionClient,
    DecodeError,
    Session,
    TransportError,
)
from cms_client.session_client import (
    ACTION_DEVICE_STATUS,
    ACTION_LOGIN,
    ACTION_QUERY_VEHICLE,
    ACTION_VEHICLE_ALARM,
)
from cms_infrastructure import ServerConfig
from conftest import FakeTransport


def _query(url):
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query, keep_blank_values=True).items()}


async def test_login_success(client, fake_transport):
    fake_transport.responses[ACTION_LOGIN] = {'result': 0, 'jsession': 'abc123'}

    session = await client.login('admin', 'p&ss word')

    assert session == Session(jsession='abc123', insecure=False)
    url = fake_transport.urls[0]
    assert url.startswith('https://cms.test.local/StandardApiAction_login.action?')
    assert _query(url) == {'account': 'admin', 'password': 'p&ss word'}


async def test_login_nonzero_result_is_auth_error(client, fake_transport):
    fake_transport.responses[ACTION_LOGIN] = {'result': 5, 'jsession': 'ignored'}

    with pytest.raises(AuthError) as exc_info:
        await client.login('admin', 'bad')
    assert exc_info.value.code == 5


async def test_login_transport_failure_is_auth_error(client, fake_transport):
    fake_transport.responses[ACTION_LOGIN] = aiohttp.ClientConnectionError('refused')

    with pytest.raises(AuthError) as exc_info:
        await client.login('admin', 'pw')
    assert isinstance(exc_info.value.__cause__, TransportError)


async def test_login_without_jsession(client, fake_transport):
    fake_transport.responses[ACTION_LOGIN] = {'result': 0}

    with pytest.raises(AuthError):
        await client.login('admin', 'pw')


async def test_login_over_insecure_fallback_is_flagged(server_config):
    transport = FakeTransport({ACTION_LOGIN: {'result': 0, 'jsession': 'abc'}}, insecure=True)
    session = await CMSSessionClient(server_config, transport).login('admin', 'pw')
    assert session.insecure
    assert str(session) == 'abc'


async def test_list_devices(client, fake_transport, session):
    fake_transport.responses[ACTION_DEVICE_STATUS] = {
        'result': 0,
        'onlines': [{'vid': 'BUS-1', 'did': '10001', 'online': 1}, {'vid': 'BUS-2', 'did': 10002}],
    }

    response = await client.list_devices(session)

    assert [d.label for d in response.onlines] == ['BUS-1 (10001)', 'BUS-2 (10002)']
    assert _query(fake_transport.urls[0]) == {'jsession': 'tok'}


async def test_list_devices_accepts_raw_token(client, fake_transport):
    fake_transport.responses[ACTION_DEVICE_STATUS] = {'result': 0, 'onlines': None}

    response = await client.list_devices('raw-token')

    assert response.onlines == []
    assert _query(fake_transport.urls[0]) == {'jsession': 'raw-token'}


async def test_get_vehicle_info(client, fake_transport, session):
    fake_transport.responses[ACTION_QUERY_VEHICLE] = {
        'result': 0,
        'companys': [{'id': 3, 'nm': 'Fleet Co', 'pId': 2}],
        'vehicles': [{
            'id': 7, 'nm': 'BUS-1', 'pid': 3, 'pnm': 'Fleet Co',
            'dl': [{'id': '10001', 'cc': 4, 'cn': 'CH1,CH2,CH3,CH4', 'sim': '123', 'ist': '2024-01-01'}],
        }],
    }

    response = await client.get_vehicle_info(session)

    assert response.companys[0].name == 'Fleet Co'
    assert response.companys[0].parent_id == 2
    vehicle = response.vehicles[0]
    assert vehicle.company_name == 'Fleet Co'
    assert vehicle.devices[0].channels == 4
    assert vehicle.devices[0].install_time == '2024-01-01'


async def test_get_alarms_params(client, fake_transport, session):
    fake_transport.responses[ACTION_VEHICLE_ALARM] = {
        'result': 0,
        'alarmlist': [{'DevIDNO': '10001', 'type': 2, 'hd': 1,
                       'Gps': {'lat': 22543210, 'lng': 114057890, 'sp': 605}}],
        'pagination': {'totalPages': 1, 'currentPage': 1, 'pageRecords': 50, 'totalRecords': 1},
    }

    response = await client.get_alarms(session, '10001', 1)

    assert _query(fake_transport.urls[0]) == {'jsession': 'tok', 'DevIDNO': '10001', 'toMap': '1'}
    alarm = response.alarmlist[0]
    assert alarm.processed
    assert alarm.gps.latitude == pytest.approx(22.54321)
    assert alarm.gps.speed_kmh == pytest.approx(60.5)
    assert response.pagination.total_records == 1


async def test_get_alarms_all_devices(client, fake_transport, session):
    fake_transport.responses[ACTION_VEHICLE_ALARM] = {'result': 0}

    response = await client.get_alarms(session)

    assert response.alarmlist == []
    assert _query(fake_transport.urls[0]) == {'jsession': 'tok', 'DevIDNO': '', 'toMap': '0'}


async def test_get_alarms_rejects_unknown_coord_system(client, fake_transport, session):
    with pytest.raises(ValueError):
        await client.get_alarms(session, '10001', 3)
    assert fake_transport.urls == []


async def test_nonzero_result_raises_api_error(client, fake_transport, session):
    fake_transport.responses[ACTION_VEHICLE_ALARM] = {'result': 4}

    with pytest.raises(APIResultError) as exc_info:
        await client.get_alarms(session)
    assert exc_info.value.code == 4
    assert exc_info.value.action == ACTION_VEHICLE_ALARM


@pytest.mark.parametrize('body', [b'<html>error</html>', b'[1, 2]', b'{"result": "zero"}'])
async def test_bad_body_raises_decode_error(client, fake_transport, session, body):
    fake_transport.responses[ACTION_DEVICE_STATUS] = body

    with pytest.raises(DecodeError):
        await client.list_devices(session)


async def test_missing_result_is_a_failure(client, fake_transport, session):
    fake_transport.responses[ACTION_DEVICE_STATUS] = {'onlines': []}

    with pytest.raises(APIResultError):
        await client.list_devices(session)


async def test_transport_error_wraps_network_failure(client, fake_transport, session):
    fake_transport.responses[ACTION_DEVICE_STATUS] = aiohttp.ClientConnectionError('reset')

    with pytest.raises(TransportError) as exc_info:
        await client.list_devices(session)
    assert exc_info.value.url == 'https://cms.test.local/StandardApiAction_getDeviceOlStatus.action'


async def test_insecure_flag_propagates_to_response(server_config, session):
    transport = FakeTransport({ACTION_DEVICE_STATUS: {'result': 0}}, insecure=True)
    response = await CMSSessionClient(server_config, transport).list_devices(session)
    assert response.insecure


async def test_api_port_used_in_action_url(fake_transport, session):
    config = ServerConfig(server_url='http://cms.test.local', api_port=8080)
    fake_transport.responses[ACTION_DEVICE_STATUS] = {'result': 0}

    await CMSSessionClient(config, fake_transport).list_devices(session)

    assert fake_transport.urls[0].startswith('http://cms.test.local:8080/StandardApiAction_getDeviceOlStatus.action?')
