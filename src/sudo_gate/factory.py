"""
Factory functions for automatic service creation.

Implements the 'if not provided, create' pattern for framework
integrations: middleware that is not handed a container builds the
process default one from Django settings or the environment.
"""

import logging
from typing import Optional

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.contrib.dependency_injector import SudoGateContainer, use_settings

logger = logging.getLogger(__name__)

_default_container: Optional[SudoGateContainer] = None


def create_default_config() -> SudoGateConfig:
    """
    Build the configuration from Django settings or environment variables.

    Django's ``SUDO_GATE`` dict wins when Django is installed and
    configured; otherwise ``SUDO_GATE_*`` environment variables are read.
    """
    try:
        from django.conf import settings
        from django.core.exceptions import ImproperlyConfigured
    except ImportError:
        return SudoGateConfig.from_env()

    try:
        if settings.configured and hasattr(settings, "SUDO_GATE"):
            return SudoGateConfig.from_dict(settings.SUDO_GATE)
    except ImproperlyConfigured:
        logger.debug("Django settings not available; using environment")

    return SudoGateConfig.from_env()


def create_container(config: Optional[SudoGateConfig] = None) -> SudoGateContainer:
    container = SudoGateContainer()
    use_settings(container, config or create_default_config())
    return container


def get_default_container() -> SudoGateContainer:
    """Process-wide container, created on first use."""
    global _default_container
    if _default_container is None:
        _default_container = create_container()
    return _default_container


def set_default_container(container: Optional[SudoGateContainer]) -> None:
    global _default_container
    _default_container = container
