"""Provider registry for dashboard data backends."""
from __future__ import annotations
import importlib.metadata
import logging
import os
from typing import Dict, Optional, Type

from rimuru.providers.base import DashboardDataProvider

logger = logging.getLogger("rimuru.providers")

_registry: Dict[str, Type[DashboardDataProvider]] = {}


def register_provider(name: str, cls: Type[DashboardDataProvider]) -> None:
    _registry[name] = cls


def get_provider(name: str, **kwargs) -> DashboardDataProvider:
    if name not in _registry:
        raise ValueError(f"Unknown provider: {name!r}. Available: {list(_registry)}")
    return _registry[name](**kwargs)


def init_providers(data_dir: str = "", provider_name: Optional[str] = None) -> DashboardDataProvider:
    """
    Register built-in providers, load plugins and build the selected one.
    Called once at dashboard startup after config resolution.
    """
    from rimuru.providers.local import LocalDataProvider
    register_provider("local", LocalDataProvider)

    # 3rd-party providers via entry points
    try:
        eps = importlib.metadata.entry_points(group="rimuru.providers")
    except TypeError:
        # Python < 3.10 has no group= selection
        eps = importlib.metadata.entry_points().get("rimuru.providers", [])
    for ep in eps:
        try:
            register_provider(ep.name, ep.load())
            logger.info(f"Loaded provider plugin: {ep.name!r}")
        except Exception as e:
            logger.warning(f"Failed to load provider {ep.name!r}: {e}")

    provider_name = provider_name or os.environ.get("RIMURU_PROVIDER", "local")
    if provider_name not in _registry:
        logger.warning(f"Unknown provider {provider_name!r}, falling back to 'local'")
        provider_name = "local"

    return _registry[provider_name](data_dir=data_dir)


__all__ = [
    "DashboardDataProvider",
    "register_provider",
    "get_provider",
    "init_providers",
]
