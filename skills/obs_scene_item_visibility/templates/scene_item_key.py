"""
Scene item keys: the stable string used to address one source inside one scene.

Both names are percent-encoded with no safe characters before being joined,
so the separator and '%' can never appear raw inside a component.
"""

import re
from dataclasses import dataclass
from urllib.parse import quote, unquote

from skills.obs_scene_item_visibility.templates.errors import MalformedKey

SEPARATOR = "|"

_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class SceneItemRecord:
    scene_name: str
    source_name: str

    @property
    def label(self) -> str:
        return f"{self.scene_name} - {self.source_name}"


def encode(scene_name: str, source_name: str) -> str:
    return quote(scene_name, safe="") + SEPARATOR + quote(source_name, safe="")


def _decode_half(key: str, half: str) -> str:
    if _BAD_ESCAPE_RE.search(half):
        raise MalformedKey(key, "invalid percent escape")
    try:
        return unquote(half, errors="strict")
    except UnicodeDecodeError as e:
        raise MalformedKey(key, f"invalid UTF-8 ({e.reason})") from e


def decode(key: str) -> SceneItemRecord:
    if not isinstance(key, str):
        raise MalformedKey(key, "not a string")

    scene_part, sep, source_part = key.partition(SEPARATOR)
    if not sep:
        raise MalformedKey(key, "separator missing")

    return SceneItemRecord(
        scene_name=_decode_half(key, scene_part),
        source_name=_decode_half(key, source_part),
    )
