import io
import json
import logging

import pytest

from logging_config import JSONFormatter, SecretMaskingFilter, mask_secrets, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_mask_secrets():
    url = 'https://h/StandardApiAction_login.action?account=admin&password=s3cr3t&x=1'
    assert mask_secrets(url) == 'https://h/StandardApiAction_login.action?account=admin&password=***&x=1'
    assert mask_secrets('rtsp://h:6604/3/3?AVType=1&jsession=abc&DevIDNO=D1') == (
        'rtsp://h:6604/3/3?AVType=1&jsession=***&DevIDNO=D1'
    )
    assert mask_secrets('nothing here') == 'nothing here'


def test_filter_masks_formatted_args():
    record = logging.LogRecord('t', logging.ERROR, __file__, 1, 'failed: %s', ('GET /x?jsession=tok',), None)
    assert SecretMaskingFilter().filter(record)
    assert record.getMessage() == 'failed: GET /x?jsession=***'


def test_json_formatter():
    record = logging.LogRecord('cms', logging.WARNING, __file__, 7, 'hello', None, None)
    record.extra_fields = {'device': 'D1'}
    entry = json.loads(JSONFormatter().format(record))
    assert entry['level'] == 'WARNING'
    assert entry['message'] == 'hello'
    assert entry['device'] == 'D1'
    assert entry['timestamp'].endswith('Z')


def test_setup_logging_writes_masked_text(tmp_path, monkeypatch):
    monkeypatch.delenv('LOG_FILE', raising=False)
    monkeypatch.delenv('LOG_JSON', raising=False)
    stream = io.StringIO()
    log_file = tmp_path / 'logs' / 'client.log'

    setup_logging(level='debug', log_file=str(log_file), stream=stream)
    logging.getLogger('cms.test').info('login url ?account=a&password=pw')

    assert 'password=***' in stream.getvalue()
    assert 'password=pw' not in log_file.read_text()
    assert logging.getLogger('aiohttp').level == logging.WARNING
