"""Pytest configuration and fixtures."""

from io import BytesIO
from unittest.mock import MagicMock

import pytest
from PIL import Image

from config import load_settings


@pytest.fixture
def environ(tmp_path):
    """Provide a complete, valid environment."""
    return {
        'ZABBIX_URL': 'https://zabbix.example.com/api_jsonrpc.php',
        'ZABBIX_TOKEN': 'secret-token',
        'ZABBIX_USER': 'Admin',
        'ZABBIX_PASSWORD': 'zabbix',
        'ZABBIX_IMAGES_DIR': str(tmp_path / 'Images'),
    }


@pytest.fixture
def settings(environ):
    """Provide settings built from the environment fixture."""
    return load_settings(environ)


@pytest.fixture
def png_bytes():
    """Provide a small valid PNG image."""
    buffer = BytesIO()
    Image.new('RGB', (12, 6), 'white').save(buffer, 'PNG')
    return buffer.getvalue()


def make_chart_response(content, status_code=200, content_type='image/png'):
    """Build a fake requests response for chart2.php."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = {'Content-Type': content_type}
    response.content = content
    return response


def make_web_session(chart_response=None, cookies=None):
    """Build a fake requests session usable as a context manager."""
    session = MagicMock()
    session.__enter__.return_value = session
    session.__exit__.return_value = False
    session.cookies.get_dict.return_value = (
        {'zbx_session': 'cookie-value'} if cookies is None else cookies
    )
    session.get.return_value = chart_response
    return session


@pytest.fixture
def chart_response():
    """Provide the fake chart response factory."""
    return make_chart_response


@pytest.fixture
def web_session():
    """Provide the fake web session factory."""
    return make_web_session
