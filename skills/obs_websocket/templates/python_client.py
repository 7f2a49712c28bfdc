"""
Gesell template: OBS WebSocket control channel (obsws-python), asyncio flavour.

Install:
  pip install obsws-python

Env vars (recommended):
  OBS_WS_HOST, OBS_WS_PORT, OBS_WS_PASSWORD, OBS_WS_TIMEOUT

obsws-python clients are blocking and run their event callbacks on a worker
thread. ObsControlChannel hides that: requests run via asyncio.to_thread and
are serialized on one lock (the ReqClient socket is shared), and events are
handed back to the subscriber's event loop with call_soon_threadsafe.
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from obsws_python import EventClient, ReqClient
from obsws_python.error import OBSSDKError, OBSSDKRequestError
from websocket import WebSocketException

from skills.obs_scene_item_visibility.templates.control_channel import (
    SceneListing,
    Unsubscribe,
    VisibilityCallback,
    VisibilityChanged,
)
from skills.obs_scene_item_visibility.templates.errors import SourceNotFound, TransportError

logger = logging.getLogger(__name__)

_TAG = "[obs-ws]"

# obs-websocket v5 RequestStatus.ResourceNotFound
RESOURCE_NOT_FOUND = 600

_TRANSPORT_ERRORS = (OBSSDKError, OSError, WebSocketException)


@dataclass
class ObsWsConfig:
    host: str = "localhost"
    port: int = 4455
    password: str = ""
    timeout: float = 5.0

    @staticmethod
    def from_env() -> "ObsWsConfig":
        host = os.getenv("OBS_WS_HOST", "localhost")
        port = int(os.getenv("OBS_WS_PORT", "4455"))
        password = os.getenv("OBS_WS_PASSWORD", "")
        timeout = float(os.getenv("OBS_WS_TIMEOUT", "5"))
        return ObsWsConfig(host=host, port=port, password=password, timeout=timeout)


class ObsControlChannel:
    """Scene requests + visibility events over obs-websocket v5.

    Clients connect on first use. A transport failure drops the request
    client so the next call reconnects.
    """

    def __init__(
        self,
        cfg: ObsWsConfig,
        req_factory: Callable[..., ReqClient] = ReqClient,
        event_factory: Callable[..., EventClient] = EventClient,
    ):
        self.cfg = cfg
        self._req_factory = req_factory
        self._event_factory = event_factory
        self._client: Optional[ReqClient] = None
        self._events: Optional[EventClient] = None
        self._lock = threading.Lock()
        # (scene name, scene item id) -> source name, learned from list_scenes
        self._item_sources: Dict[Tuple[str, int], str] = {}

    def _connect_kwargs(self):
        return dict(host=self.cfg.host, port=self.cfg.port, password=self.cfg.password, timeout=self.cfg.timeout)

    # -----------------------------
    # Request side
    # -----------------------------
    def _call(self, fn):
        with self._lock:
            try:
                if self._client is None:
                    self._client = self._req_factory(**self._connect_kwargs())
                return fn(self._client)
            except OBSSDKRequestError:
                raise
            except _TRANSPORT_ERRORS as e:
                self._drop_client()
                raise TransportError(f"OBS request failed: {e}") from e

    def _drop_client(self):
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.disconnect()
        except _TRANSPORT_ERRORS as e:
            logger.debug("%s Disconnect after failure raised: %s", _TAG, e)

    def _list_scenes_sync(self, client: ReqClient) -> List[SceneListing]:
        listings: List[SceneListing] = []
        item_sources: Dict[Tuple[str, int], str] = {}

        for scene in client.get_scene_list().scenes:
            scene_name = scene.get("sceneName")
            items = client.get_scene_item_list(scene_name).scene_items or []
            sources = []
            for it in items:
                source_name = it.get("sourceName")
                sources.append(source_name)
                item_sources[(scene_name, it.get("sceneItemId"))] = source_name
            listings.append(SceneListing(name=scene_name, sources=sources))

        # read from the event thread; swap, don't mutate
        self._item_sources = item_sources
        return listings

    def _get_visibility_sync(self, client: ReqClient, scene_name: str, source_name: str) -> bool:
        item_id = client.get_scene_item_id(scene_name, source_name).scene_item_id
        return bool(client.get_scene_item_enabled(scene_name, item_id).scene_item_enabled)

    def _set_visibility_sync(self, client: ReqClient, scene_name: str, source_name: str, visible: bool):
        item_id = client.get_scene_item_id(scene_name, source_name).scene_item_id
        client.set_scene_item_enabled(scene_name, item_id, visible)

    async def list_scenes(self) -> List[SceneListing]:
        try:
            return await asyncio.to_thread(self._call, self._list_scenes_sync)
        except OBSSDKRequestError as e:
            # scene removed between GetSceneList and GetSceneItemList
            raise TransportError(f"Scene list changed while fetching: {e}") from e

    async def get_visibility(self, scene_name: str, source_name: str) -> bool:
        try:
            return await asyncio.to_thread(
                self._call, lambda c: self._get_visibility_sync(c, scene_name, source_name)
            )
        except OBSSDKRequestError as e:
            raise self._request_error(e, scene_name, source_name) from e

    async def set_visibility(self, scene_name: str, source_name: str, visible: bool) -> None:
        try:
            await asyncio.to_thread(
                self._call, lambda c: self._set_visibility_sync(c, scene_name, source_name, visible)
            )
        except OBSSDKRequestError as e:
            raise self._request_error(e, scene_name, source_name) from e
        logger.info("%s %s / %s set visible=%s", _TAG, scene_name, source_name, visible)

    @staticmethod
    def _request_error(e: OBSSDKRequestError, scene_name: str, source_name: str):
        if getattr(e, "code", None) == RESOURCE_NOT_FOUND:
            return SourceNotFound(scene_name, source_name)
        return TransportError(f"OBS rejected request for {scene_name} / {source_name}: {e}")

    # -----------------------------
    # Event side
    # -----------------------------
    def _event_client(self) -> EventClient:
        if self._events is None:
            try:
                self._events = self._event_factory(**self._connect_kwargs())
            except _TRANSPORT_ERRORS as e:
                raise TransportError(f"OBS event connection failed: {e}") from e
        return self._events

    def subscribe_visibility_changed(self, callback: VisibilityCallback) -> Unsubscribe:
        """Must be called from the event loop that should receive callbacks."""
        loop = asyncio.get_running_loop()
        events = self._event_client()

        # obsws-python dispatches on the function name, so it has to be exactly this.
        def on_scene_item_enable_state_changed(data):
            scene_name = getattr(data, "scene_name", None)
            item_id = getattr(data, "scene_item_id", None)
            source_name = self._item_sources.get((scene_name, item_id))
            if source_name is None:
                logger.debug("%s Enable state changed for unknown item %s/%s", _TAG, scene_name, item_id)
                return
            try:
                loop.call_soon_threadsafe(callback, VisibilityChanged(scene_name, source_name))
            except RuntimeError:
                logger.debug("%s Event loop closed; dropping event for %s / %s", _TAG, scene_name, source_name)

        events.callback.register(on_scene_item_enable_state_changed)

        def unsubscribe():
            events.callback.deregister(on_scene_item_enable_state_changed)

        return unsubscribe

    def close(self):
        with self._lock:
            self._drop_client()
        events, self._events = self._events, None
        if events is not None:
            try:
                events.disconnect()
            except _TRANSPORT_ERRORS as e:
                logger.debug("%s Event client disconnect raised: %s", _TAG, e)
