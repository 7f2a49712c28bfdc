"""
Selection state machine.

Owns what is currently selected and what is currently displayed about it.
Every stimulus (mount, selection change, visibility notification) ends in at
most one render. Resolves are tagged with a sequence number and the key they
were issued for; a completion whose tag is no longer current is dropped, so
a slow answer for an old selection never overwrites the new one.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from skills.obs_scene_item_visibility.templates.control_channel import VisibilityChanged
from skills.obs_scene_item_visibility.templates.display import (
    NO_SOURCE_LABEL,
    DisplaySink,
    DisplayState,
    Indicator,
)
from skills.obs_scene_item_visibility.templates.errors import MalformedKey, SourceNotFound, TransportError
from skills.obs_scene_item_visibility.templates.scene_directory import SceneDirectory
from skills.obs_scene_item_visibility.templates.scene_item_key import SceneItemRecord, decode
from skills.obs_scene_item_visibility.templates.visibility_resolver import VisibilityResolver

logger = logging.getLogger(__name__)

_TAG = "[scene-item]"


class Phase(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True)
class SelectionState:
    phase: Phase
    key: Optional[str] = None
    record: Optional[SceneItemRecord] = None
    visible: Optional[bool] = None


IDLE = SelectionState(Phase.IDLE)


class SelectionStateMachine:
    def __init__(self, directory: SceneDirectory, resolver: VisibilityResolver, sink: DisplaySink):
        self.directory = directory
        self.resolver = resolver
        self.sink = sink
        self.state = IDLE
        self.display: Optional[DisplayState] = None
        self.closed = False
        self._sequence = 0

    def open(self):
        self.closed = False

    def close(self):
        self.closed = True

    async def select(self, key: Optional[str]) -> SelectionState:
        """Evaluate key as the new selection and render the outcome."""
        self._sequence += 1
        seq = self._sequence

        if key is None:
            self.state = IDLE
            self._render(NO_SOURCE_LABEL, Indicator.NO_SELECTION)
            return self.state

        record = self.directory.lookup(key)
        if record is None:
            self._log_unresolvable(key)
            self.state = SelectionState(Phase.UNRESOLVABLE, key=key)
            self._render(NO_SOURCE_LABEL, Indicator.UNKNOWN)
            return self.state

        return await self._resolve(key, record, seq)

    def matches(self, event: VisibilityChanged) -> bool:
        if self.state.phase not in (Phase.RESOLVING, Phase.RESOLVED):
            return False
        record = self.state.record
        # Both fields must match; an event sharing only the scene or only
        # the source is not ours.
        return event.scene_name == record.scene_name and event.source_name == record.source_name

    async def notify(self, event: VisibilityChanged) -> bool:
        """Re-resolve if event concerns the current selection. Returns True if it did."""
        if not self.matches(event):
            return False
        self._sequence += 1
        await self._resolve(self.state.key, self.state.record, self._sequence)
        return True

    async def _resolve(self, key: str, record: SceneItemRecord, seq: int) -> SelectionState:
        self.state = SelectionState(Phase.RESOLVING, key=key, record=record)
        try:
            visible = await self.resolver.resolve(record.scene_name, record.source_name)
        except (SourceNotFound, TransportError) as e:
            if self._is_stale(seq, key):
                logger.debug("%s Dropping stale failure for %r", _TAG, key)
                return self.state
            logger.warning("%s Could not resolve %s: %s", _TAG, record.label, e)
            self.state = SelectionState(Phase.UNRESOLVABLE, key=key, record=record)
            self._render(record.label, Indicator.UNKNOWN)
            return self.state

        if self._is_stale(seq, key):
            logger.debug("%s Dropping stale result for %r (visible=%s)", _TAG, key, visible)
            return self.state

        self.state = SelectionState(Phase.RESOLVED, key=key, record=record, visible=visible)
        self._render(record.label, Indicator.VISIBLE if visible else Indicator.HIDDEN)
        return self.state

    def _is_stale(self, seq: int, key: str) -> bool:
        return seq != self._sequence or self.state.key != key

    def _render(self, label: str, indicator: Indicator):
        if self.closed:
            return
        self.display = DisplayState(label=label, indicator=indicator)
        self.sink.render(self.display)

    def _log_unresolvable(self, key: str):
        try:
            record = decode(key)
        except MalformedKey as e:
            logger.warning("%s %s", _TAG, e)
            return
        logger.info("%s %s is not in the current scene directory", _TAG, record.label)
