"""autoreplay - replay-first UI workflow automation with layered AI escalation."""

from autoreplay.config import EngineConfig, load_engine_config
from autoreplay.container import ServiceContainer, get_container, reset_container

__all__ = [
    "EngineConfig",
    "ServiceContainer",
    "get_container",
    "load_engine_config",
    "reset_container",
]

__version__ = "0.3.0"
