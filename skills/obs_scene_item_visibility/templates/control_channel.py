"""
Capabilities the widget needs from the OBS control channel.

The connection itself is shared with the rest of the host, so it is split
into a request/response side and an event side. The widget only ever sees
these two protocols; tests pass in fakes, production passes an
ObsControlChannel (skills/obs_websocket/templates/python_client.py).
"""

from dataclasses import dataclass, field
from typing import Callable, List, Protocol


@dataclass(frozen=True)
class SceneListing:
    name: str
    sources: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class VisibilityChanged:
    scene_name: str
    source_name: str


VisibilityCallback = Callable[[VisibilityChanged], None]
Unsubscribe = Callable[[], None]


class SceneRequests(Protocol):
    async def list_scenes(self) -> List[SceneListing]:
        ...

    async def get_visibility(self, scene_name: str, source_name: str) -> bool:
        ...

    async def set_visibility(self, scene_name: str, source_name: str, visible: bool) -> None:
        ...


class VisibilityEvents(Protocol):
    def subscribe_visibility_changed(self, callback: VisibilityCallback) -> Unsubscribe:
        """Register callback; it is always invoked on the subscriber's event loop."""
        ...
