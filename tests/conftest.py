"""Shared test fixtures and configuration"""
import os
import tempfile
from typing import Generator

import pytest
import yaml
from fastapi.testclient import TestClient

from app.models.config import AdapterConfig, AppConfig, ProviderConfig, ServerConfig
from app.models.provider import Provider
from app.services.load_balancer import LoadBalancer

# Keep module-level app creation away from any real config.yaml
os.environ['CONFIG_PATH'] = os.path.join(os.path.dirname(__file__), 'config.missing.yaml')

PROVIDER1_URL = 'https://api.provider1.com'
PROVIDER2_URL = 'https://api.provider2.com'


@pytest.fixture
def test_config_dict() -> dict:
    """Sample configuration dictionary for testing"""
    return {
        'default_provider': {
            'id': 'provider1',
            'base_url': PROVIDER1_URL,
            'token': 'test-key-1',
            'weight': 1,
        },
        'additional_providers': (
            '[{"id": "provider2", "base_url": "%s", "token": "test-key-2", "weight": 2}]' % PROVIDER2_URL
        ),
        'strategy': 'round-robin',
        'server': {
            'host': '0.0.0.0',
            'port': 18000,
            'api_key': 'test-master-key',
        },
        'adapter': {
            'prefix': '/adapter',
            'upstream_path': '/v1/chat/completions',
            'default_model': 'qwen-3-32-b',
        },
        'verify_ssl': True,
    }


@pytest.fixture
def test_config(test_config_dict: dict) -> AppConfig:
    """Sample AppConfig instance for testing"""
    return AppConfig(**test_config_dict)


@pytest.fixture
def test_config_file(test_config_dict: dict) -> Generator[str, None, None]:
    """Create a temporary config file for testing"""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(test_config_dict, f)
        config_path = f.name

    yield config_path

    if os.path.exists(config_path):
        os.unlink(config_path)


@pytest.fixture
def empty_pool_config() -> AppConfig:
    """Config whose default provider has no token, so nothing is registered"""
    return AppConfig(
        default_provider=ProviderConfig(id='fallback', base_url='https://fallback.example.com', token=''),
        server=ServerConfig(api_key='test-master-key'),
        adapter=AdapterConfig(override_api_key='override-key'),
    )


@pytest.fixture
def providers() -> list[Provider]:
    return [
        Provider(id='a', base_url='https://a.example.com', token='token-a'),
        Provider(id='b', base_url='https://b.example.com', token='token-b'),
        Provider(id='c', base_url='https://c.example.com', token='token-c'),
    ]


@pytest.fixture
def load_balancer(providers: list[Provider]) -> LoadBalancer:
    return LoadBalancer(providers)


@pytest.fixture
def gateway_app(test_config: AppConfig):
    """Fresh application per test so balancer state never leaks"""
    from app.main import create_app
    return create_app(test_config)


@pytest.fixture
def app_client(gateway_app) -> TestClient:
    """FastAPI test client bound to the test configuration"""
    return TestClient(gateway_app)


@pytest.fixture
def auth_headers() -> dict:
    return {'Authorization': 'Bearer test-master-key'}


@pytest.fixture
def sample_chat_request() -> dict:
    """Sample adapter chat request"""
    return {
        'model': 'llama4-maverick',
        'messages': [
            {'role': 'system', 'content': 'You are a helpful assistant.'},
            {'role': 'user', 'content': 'Hello!'}
        ],
    }


@pytest.fixture
def sample_upstream_reply() -> dict:
    """Buffered upstream chat reply with a JSON-wrapped content"""
    return {
        'id': 'chatcmpl-123',
        'object': 'chat.completion',
        'created': 1677652288,
        'model': 'llama4-maverick',
        'choices': [{
            'index': 0,
            'message': {'role': 'assistant', 'content': '{"text": "Hello! How can I help?"}'},
            'finish_reason': 'stop',
        }],
    }
