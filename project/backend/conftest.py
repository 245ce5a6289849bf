"""
Pytest configuration shared by every test package.
"""

import os

import pytest

TEST_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_KEY": "test_service_key_1234567890123456789012345678901234567890",
    "REDIS_URL": "redis://localhost:6379",
    "OPENAI_API_KEY": "sk-test123456789012345678901234567890",
    "ELEVENLABS_API_KEY": "el_test123456789012345678901234567890",
    "SHOTSTACK_API_KEY": "ss_test123456789012345678901234567890",
    "ENVIRONMENT": "development",
    "LOG_LEVEL": "DEBUG",
}


def pytest_configure(config):
    """Set up environment variables before any imports."""
    for key, value in TEST_ENV.items():
        os.environ.setdefault(key, value)


@pytest.fixture(autouse=True)
def test_env_vars(monkeypatch):
    """Set up test environment variables (autouse to ensure they're set)."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
