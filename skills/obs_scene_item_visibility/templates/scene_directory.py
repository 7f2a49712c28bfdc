"""
Scene directory: every (scene, source) pair OBS reported in the last snapshot.

The mapping is replaced as a whole on each successful rebuild and never
mutated in place, so readers always see one consistent snapshot. A failed
rebuild leaves the previous snapshot where it was.
"""

import asyncio
import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from skills.obs_scene_item_visibility.templates.control_channel import SceneListing, SceneRequests
from skills.obs_scene_item_visibility.templates.errors import DirectoryFetchFailed
from skills.obs_scene_item_visibility.templates.scene_item_key import SceneItemRecord, encode

logger = logging.getLogger(__name__)

_TAG = "[scene-item]"

DEFAULT_OPTION_ICON = "widgets"


def flatten_scenes(scenes: Iterable[SceneListing]) -> Dict[str, SceneItemRecord]:
    items: Dict[str, SceneItemRecord] = {}
    for scene in scenes:
        for source_name in scene.sources:
            key = encode(scene.name, source_name)
            if key in items:
                # Same source placed twice in one scene; both share a key.
                logger.warning("%s Duplicate scene item %r, keeping first", _TAG, key)
                continue
            items[key] = SceneItemRecord(scene_name=scene.name, source_name=source_name)
    return items


class SceneDirectory:
    def __init__(self, items: Optional[Mapping[str, SceneItemRecord]] = None):
        self._items: Mapping[str, SceneItemRecord] = MappingProxyType(dict(items or {}))
        self._pending: Optional["asyncio.Future[None]"] = None

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key) -> bool:
        return key in self._items

    def keys(self) -> List[str]:
        return list(self._items.keys())

    def lookup(self, key: Optional[str]) -> Optional[SceneItemRecord]:
        if key is None:
            return None
        return self._items.get(key)

    async def rebuild(self, requests: SceneRequests) -> "SceneDirectory":
        """Fetch a fresh snapshot and swap it in.

        Only one fetch runs at a time; a caller arriving while one is in
        flight waits for that fetch instead of starting another. Cancelling
        one waiting caller does not cancel the shared fetch.

        Raises DirectoryFetchFailed if the scene list could not be fetched,
        in which case the previous snapshot is kept.
        """
        if self._pending is None or self._pending.done():
            self._pending = asyncio.ensure_future(self._fetch(requests))
            self._pending.add_done_callback(self._clear_pending)
        await asyncio.shield(self._pending)
        return self

    def _clear_pending(self, fut: "asyncio.Future[None]"):
        if self._pending is fut:
            self._pending = None
        # mark the failure retrieved even if every waiter was cancelled
        if not fut.cancelled():
            fut.exception()

    async def _fetch(self, requests: SceneRequests) -> None:
        try:
            scenes = await requests.list_scenes()
        except Exception as e:
            logger.warning("%s Scene list fetch failed, keeping %d known items: %s", _TAG, len(self._items), e)
            raise DirectoryFetchFailed(str(e)) from e

        items = flatten_scenes(scenes)
        self._items = MappingProxyType(items)
        logger.info("%s Directory rebuilt: %d scene items", _TAG, len(items))

    def prop_options(self, icon: str = DEFAULT_OPTION_ICON) -> Dict[str, Dict[str, str]]:
        return {key: {"text": record.label, "icon": icon} for key, record in self._items.items()}
