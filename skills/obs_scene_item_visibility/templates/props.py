"""
Per-instance widget configuration ("props").

PropsStore stands in for the dashboard host's config store: values can be
persisted to a JSON file, and subscribers first get every stored value with
initial=True, then each later change with initial=False.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from skills.obs_scene_item_visibility.templates.scene_directory import SceneDirectory

logger = logging.getLogger(__name__)

_TAG = "[scene-item]"

SCENE_ITEM_PROP = "sceneItem"

DEFAULT_PROPS: Dict[str, Any] = {SCENE_ITEM_PROP: None}

PropCallback = Callable[[str, Any, bool], None]


def props_schema(directory: SceneDirectory) -> Dict[str, Dict[str, Any]]:
    return {
        SCENE_ITEM_PROP: {
            "type": "select",
            "required": True,
            "default": None,
            "label": "Source",
            "help": "Select a source to toggle",
            "options": directory.prop_options(),
        },
    }


class PropsStore:
    def __init__(self, path: Optional[Path] = None, defaults: Optional[Dict[str, Any]] = None):
        self.path = Path(path) if path is not None else None
        self._values: Dict[str, Any] = dict(DEFAULT_PROPS if defaults is None else defaults)
        self._subscribers: List[PropCallback] = []
        if self.path is not None and self.path.exists():
            self._load()

    def _load(self):
        try:
            stored = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("%s Ignoring unreadable props file %s: %s", _TAG, self.path, e)
            return
        if not isinstance(stored, dict):
            logger.warning("%s Ignoring props file %s: expected an object", _TAG, self.path)
            return
        self._values.update(stored)

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._values, indent=2, ensure_ascii=False), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def set(self, key: str, value: Any):
        self._values[key] = value
        if self.path is not None:
            self._save()
        for callback in list(self._subscribers):
            callback(key, value, False)

    def subscribe(self, callback: PropCallback) -> Callable[[], None]:
        self._subscribers.append(callback)
        for key, value in list(self._values.items()):
            callback(key, value, True)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class SubscriptionPhase(Enum):
    SEEDING = "seeding"
    LIVE = "live"


class SelectionSubscription:
    """Watch one prop; the initial delivery only seeds, later deltas call on_change."""

    def __init__(self, store: PropsStore, on_change: Callable[[Any], None], key: str = SCENE_ITEM_PROP):
        self.store = store
        self.key = key
        self.on_change = on_change
        self.phase = SubscriptionPhase.SEEDING
        self.value = None
        self._unsubscribe = None

    def start(self):
        self._unsubscribe = self.store.subscribe(self._deliver)
        self.phase = SubscriptionPhase.LIVE

    def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _deliver(self, key: str, value: Any, initial: bool):
        if key != self.key:
            return
        self.value = value
        if initial or self.phase is SubscriptionPhase.SEEDING:
            return
        self.on_change(value)
