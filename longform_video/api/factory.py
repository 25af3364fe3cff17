"""
Backend Factory
===============

Registry and factory for video generation backends.

Backends are built explicitly and handed to the coordinator; nothing here
caches instances.
"""

import logging
from typing import Optional, List, Dict, Type

from ..core.config import Config
from .base import BaseVideoBackend

logger = logging.getLogger(__name__)

# Registry of available backends
_BACKENDS: Dict[str, Type[BaseVideoBackend]] = {}


def register_backend(name: str):
    """Decorator to register a backend class."""
    def decorator(cls: Type[BaseVideoBackend]):
        _BACKENDS[name.lower()] = cls
        return cls
    return decorator


def _import_builtin_backends() -> None:
    from . import veo, longcat  # noqa: F401  (registration side effect)


def get_backend(
    name: str,
    config: Optional[Config] = None,
    **kwargs,
) -> BaseVideoBackend:
    """
    Build a backend instance.

    Args:
        name: Backend name ('veo' or 'longcat')
        config: Configuration supplying the backend section and output path
        **kwargs: Passed through to the backend constructor (api_key, client)

    Returns:
        Configured backend instance

    Raises:
        ValueError: If the backend name is not recognized
    """
    _import_builtin_backends()
    config = config or Config()

    backend_class = _BACKENDS.get(name.lower())
    if backend_class is None:
        raise ValueError(f"Unknown backend: {name}")

    section = getattr(config, name.lower(), None)
    kwargs.setdefault("output_path", config.output.base_path)
    kwargs.setdefault("filename_prefix", config.output.filename_prefix)
    logger.debug(f"Building backend {name}")
    return backend_class(config=section, **kwargs)


def list_backends() -> List[str]:
    """
    List all available backend names.

    Returns:
        List of backend names
    """
    _import_builtin_backends()
    return sorted(_BACKENDS)
