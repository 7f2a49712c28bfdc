"""
Scene item visibility widget.

Shows whether one source in one scene is visible, and keeps that in sync
with OBS as selections change and SceneItemEnableStateChanged events come in.

Dependencies are injected rather than attached after construction:

    widget = SceneItemVisibilityWidget(requests, events, props, sink)
    await widget.mount()
    ...
    await widget.unmount()

The control channel is shared with the rest of the host; the widget only
subscribes and unsubscribes, it never closes the connection.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from skills.obs_scene_item_visibility.templates.control_channel import (
    SceneRequests,
    VisibilityChanged,
    VisibilityEvents,
)
from skills.obs_scene_item_visibility.templates.display import DisplaySink, DisplayState
from skills.obs_scene_item_visibility.templates.errors import DirectoryFetchFailed, TransportError
from skills.obs_scene_item_visibility.templates.props import (
    SCENE_ITEM_PROP,
    PropsStore,
    SelectionSubscription,
    props_schema,
)
from skills.obs_scene_item_visibility.templates.scene_directory import SceneDirectory
from skills.obs_scene_item_visibility.templates.selection import Phase, SelectionState, SelectionStateMachine
from skills.obs_scene_item_visibility.templates.visibility_resolver import VisibilityResolver

logger = logging.getLogger(__name__)

_TAG = "[scene-item]"


class SceneItemVisibilityWidget:
    def __init__(
        self,
        requests: SceneRequests,
        events: VisibilityEvents,
        props: PropsStore,
        sink: DisplaySink,
    ):
        self.requests = requests
        self.events = events
        self.props = props
        self.sink = sink

        self.directory = SceneDirectory()
        self.resolver = VisibilityResolver(requests)
        self.machine = SelectionStateMachine(self.directory, self.resolver, sink)
        self.selection = SelectionSubscription(props, self._on_selection_changed)

        self.mounted = False
        self._unsubscribe_events = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SelectionState:
        return self.machine.state

    @property
    def display(self) -> Optional[DisplayState]:
        return self.machine.display

    # -----------------------------
    # Lifecycle
    # -----------------------------
    async def mount(self):
        self.machine.open()
        # Subscribe first so nothing delivered during the initial fetch is lost.
        self.selection.start()
        try:
            self._unsubscribe_events = self.events.subscribe_visibility_changed(self._on_visibility_changed)
        except TransportError as e:
            logger.warning("%s Visibility events unavailable, display will not auto-refresh: %s", _TAG, e)

        await self._rebuild_directory()
        await self.machine.select(self.props.get(SCENE_ITEM_PROP))

        self.mounted = True
        logger.info("%s Mounted with %d known scene items", _TAG, len(self.directory))

    async def unmount(self):
        self.selection.stop()
        if self._unsubscribe_events is not None:
            self._unsubscribe_events()
            self._unsubscribe_events = None
        self.machine.close()

        pending = list(self._tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self.mounted = False
        logger.info("%s Unmounted", _TAG)

    # -----------------------------
    # Operations
    # -----------------------------
    async def prepare_props(self) -> Dict[str, Dict[str, Any]]:
        return props_schema(self.directory)

    async def refetch(self) -> SelectionState:
        """Full re-fetch of the scene list, then re-evaluate the current selection.

        If the fetch fails the current display is left as it is.
        """
        if not await self._rebuild_directory():
            return self.machine.state
        return await self.machine.select(self.props.get(SCENE_ITEM_PROP))

    async def handle_selection_changed(self, key: Optional[str]) -> SelectionState:
        logger.info("%s Selection changed to %r", _TAG, key)
        return await self.machine.select(key)

    async def handle_visibility_changed(self, event: VisibilityChanged) -> bool:
        return await self.machine.notify(event)

    async def toggle(self) -> bool:
        """Flip visibility of the current scene item in OBS.

        The display is not touched here; it follows the enable-state event
        OBS sends back. Returns False when there is nothing resolved to flip
        or the request failed.
        """
        state = self.machine.state
        if state.phase is not Phase.RESOLVED:
            logger.info("%s Nothing to toggle (%s)", _TAG, state.phase.value)
            return False

        record = state.record
        try:
            await self.requests.set_visibility(record.scene_name, record.source_name, not state.visible)
        except Exception as e:
            # SourceNotFound, TransportError or anything the channel raised
            logger.warning("%s Toggle failed for %s: %s", _TAG, record.label, e)
            return False
        return True

    # -----------------------------
    # Internals
    # -----------------------------
    async def _rebuild_directory(self) -> bool:
        try:
            await self.directory.rebuild(self.requests)
        except DirectoryFetchFailed:
            # previous snapshot stays; already logged by the directory
            return False
        return True

    def _on_selection_changed(self, key: Optional[str]):
        self._spawn(self.handle_selection_changed(key))

    def _on_visibility_changed(self, event: VisibilityChanged):
        if not self.machine.matches(event):
            return
        self._spawn(self.handle_visibility_changed(event))

    def _spawn(self, coro):
        task = asyncio.ensure_future(self._run_handler(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_handler(self, coro):
        try:
            await coro
        except Exception:
            logger.exception("%s Widget handler failed", _TAG)
