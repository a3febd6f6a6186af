"""
Tests for the process-default container factory.
"""

from unittest.mock import Mock, patch

import pytest
from dependency_injector import containers

from sudo_gate.application.gate import Gate
from sudo_gate.factory import (
    create_container,
    create_default_config,
    get_default_container,
    set_default_container,
)


@pytest.fixture(autouse=True)
def _reset_default():
    set_default_container(None)
    yield
    set_default_container(None)


def test_config_from_environment(monkeypatch):
    monkeypatch.setenv("SUDO_GATE_SESSION_DURATION_MINUTES", "5")
    monkeypatch.setenv("SUDO_GATE_API_KEY_POLICY", "disabled")

    config = create_default_config()

    assert config.session_duration_minutes == 5
    assert config.api_key_policy.value == "disabled"


def test_django_setting_wins(monkeypatch):
    monkeypatch.setenv("SUDO_GATE_SESSION_DURATION_MINUTES", "5")
    mock_settings = Mock()
    mock_settings.configured = True
    mock_settings.SUDO_GATE = {"session_duration_minutes": 3}

    with patch.dict("sys.modules", {"django.conf": Mock(settings=mock_settings)}):
        config = create_default_config()

    assert config.session_duration_minutes == 3


def test_default_container_is_cached():
    first = get_default_container()
    assert isinstance(first, containers.Container)
    assert isinstance(first.gate(), Gate)
    assert get_default_container() is first


def test_set_default_container():
    container = create_container()
    set_default_container(container)
    assert get_default_container() is container
