"""
Provider Selection
==================

Maps a generation request to the backend that should serve it. Pure: no
network, no state.
"""

from typing import Optional

from ..core.config import VeoConfig
from ..core.models import GenerationRequest

VEO = "veo"
LONGCAT = "longcat"


def select_provider(request: GenerationRequest, veo: Optional[VeoConfig] = None) -> str:
    """
    Pick the backend for a request.

    1. An explicit override always wins, even outside that backend's range.
    2. Durations beyond what Veo can reach by chaining (base plus every
       allowed extension, 148s by default) go to LongCat.
    3. Everything else goes to Veo.

    Args:
        request: The generation request
        veo: Veo envelope used for the ceiling (defaults to VeoConfig())

    Returns:
        Backend name
    """
    if request.provider_override:
        return request.provider_override.lower()

    ceiling = (veo or VeoConfig()).max_chain_duration
    if request.target_duration_seconds > ceiling:
        return LONGCAT

    return VEO
