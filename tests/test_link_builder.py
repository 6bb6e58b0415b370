import pytest

from cms_client import HLSLinkOptions, LinkBuilder, RTMPLinkOptions, RTSPLinkOptions, hls_video_tag
from cms_infrastructure import ServerConfig


@pytest.fixture
def links():
    return LinkBuilder(ServerConfig(server_url='https://h'))


def test_rtsp_link_default_port(links):
    url = links.rtsp_link(RTSPLinkOptions(
        jsession='tok', dev_idno='D1', channel=2, stream=1, av_type=0,
    ))
    assert url == 'rtsp://h:6604/3/3?AVType=1&jsession=tok&DevIDNO=D1&Channel=2&Stream=1'


def test_rtmp_link_explicit_host_and_port(links):
    url = links.rtmp_link(RTMPLinkOptions(
        server_host='media.local', server_port=1936, jsession='tok',
        dev_idno='D1', channel=0, stream=0, av_type=2,
    ))
    assert url == 'rtmp://media.local:1936/3/3?AVType=2&jsession=tok&DevIDNO=D1&Channel=0&Stream=0'


def test_rtmp_link_defaults(links):
    url = links.rtmp_link(RTMPLinkOptions(jsession='tok', dev_idno='D1'))
    assert url.startswith('rtmp://h:1935/3/3?AVType=1&')


def test_hls_link(links):
    url = links.hls_link(HLSLinkOptions(jsession='tok', dev_idno='D1', channel=0, stream=0, request_type=1))
    assert url == 'https://h:16604/hls/1_D1_0_0.m3u8?jsession=tok'


def test_hls_link_default_request_type(links):
    url = links.hls_link(HLSLinkOptions(jsession='tok', dev_idno='D1', channel=3, stream=1))
    assert url == 'https://h:16604/hls/1_D1_3_1.m3u8?jsession=tok'


def test_hostname_strips_scheme_port_and_path():
    links = LinkBuilder(ServerConfig(server_url='http://cms.example.com:8080/path/'))
    url = links.rtsp_link(RTSPLinkOptions(jsession='t', dev_idno='X'))
    assert url.startswith('rtsp://cms.example.com:6604/')


@pytest.mark.parametrize('opts', [
    RTSPLinkOptions(jsession='t', dev_idno=''),
    RTSPLinkOptions(jsession='t', dev_idno='bad id'),
    RTSPLinkOptions(jsession='t', dev_idno='D1', channel=-1),
    RTSPLinkOptions(jsession='t', dev_idno='D1', stream=2),
    RTSPLinkOptions(jsession='t', dev_idno='D1', av_type=3),
    RTSPLinkOptions(jsession='t', dev_idno='D1', server_port=70000),
])
def test_invalid_link_inputs(links, opts):
    with pytest.raises(ValueError):
        links.rtsp_link(opts)


def test_player_links(links):
    result = links.player_links('tok', 'D1', 'V 1', 'admin', 'p&ss')
    assert list(result) == ['Web Player ID', 'Web Player VI', 'Live API']
    assert result['Web Player ID'] == (
        'http://h/808gps/open/player/video.html?lang=en&devIdno=D1&account=admin&password=p%26ss'
    )
    assert result['Web Player VI'] == (
        'http://h/808gps/open/player/video.html?lang=en&vehiIdno=V%201&account=admin&password=p%26ss'
    )
    assert result['Live API'] == (
        'https://h/StandardApiAction_realTimeVedio.action'
        '?jsession=tok&DevIDNO=D1&Chn=1&Sec=300&Label=test'
    )


def test_live_api_base_url_follows_api_port():
    builder = LinkBuilder(ServerConfig(server_url='https://h', api_port=8443))
    assert builder.live_api_base_url() == 'https://h:8443/StandardApiAction_realTimeVedio.action'
    assert builder.player_links('tok', 'D1', 'V1', 'a', 'p')['Live API'].startswith(builder.live_api_base_url() + '?')


def test_hls_video_tag():
    tag = hls_video_tag('https://h:16604/hls/1_D1_0_0.m3u8?jsession=tok')
    assert tag.startswith('<video controls')
    assert 'width="352" height="288"' in tag
    assert '<source src="https://h:16604/hls/1_D1_0_0.m3u8?jsession=tok" type="application/x-mpegURL">' in tag
