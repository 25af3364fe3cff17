"""
Workflow Orchestration
======================

Request-level orchestration on top of the backend adapters.

Components:
- VideoCoordinator: Main entry point for video generation
- SceneExtensionChain: Base clip plus native extensions on Veo
- select_provider: Duration-based backend routing
- validate_request: Shape checks before any backend call
"""

from .coordinator import VideoCoordinator
from .chainer import SceneExtensionChain
from .selector import select_provider
from .validator import validate_request

__all__ = [
    "VideoCoordinator",
    "SceneExtensionChain",
    "select_provider",
    "validate_request",
]
