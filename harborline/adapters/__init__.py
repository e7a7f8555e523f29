"""Adapters for the services Harborline delegates to.

``base`` defines the Protocols the engine depends on.  Concrete backends
(``docker``, ``llm``, ``github``) are imported on demand so that the core
never pulls in their third-party clients.
"""

from harborline.adapters.base import (
    AgentExecutor,
    CacheBackend,
    Container,
    ContainerPlatform,
    IssueTracker,
    TrackerFactory,
)

__all__ = [
    "AgentExecutor",
    "CacheBackend",
    "Container",
    "ContainerPlatform",
    "IssueTracker",
    "TrackerFactory",
]
