"""
Run the scene item visibility widget against a live OBS, rendering to the console.

Env vars:
  OBS_WS_HOST, OBS_WS_PORT, OBS_WS_PASSWORD, OBS_WS_TIMEOUT
  WIDGET_PROPS_PATH   props JSON file (default: scene_item_widget.json)
  WIDGET_SCENE_ITEM   scene item key to select, e.g. "Scene1|CamA"
  WIDGET_SCENE, WIDGET_SOURCE
                      alternative to WIDGET_SCENE_ITEM using plain names
  LIST_SCENE_ITEMS    "1" prints the selectable scene items and exits
  PRINT_EVENTS        "0" keeps logging to warnings only
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from skills.obs_scene_item_visibility.templates.display import ConsoleDisplay, DisplaySink
from skills.obs_scene_item_visibility.templates.errors import MalformedKey
from skills.obs_scene_item_visibility.templates.props import SCENE_ITEM_PROP, PropsStore
from skills.obs_scene_item_visibility.templates.scene_item_key import decode, encode
from skills.obs_scene_item_visibility.templates.widget import SceneItemVisibilityWidget
from skills.obs_websocket.templates.python_client import ObsControlChannel, ObsWsConfig

logger = logging.getLogger(__name__)

_TAG = "[scene-item]"


@dataclass
class WidgetRunConfig:
    props_path: str = "scene_item_widget.json"
    scene_item: Optional[str] = None
    list_only: bool = False
    print_events: bool = True

    @staticmethod
    def from_env() -> "WidgetRunConfig":
        scene_item = os.getenv("WIDGET_SCENE_ITEM", "").strip() or None
        scene = os.getenv("WIDGET_SCENE", "")
        source = os.getenv("WIDGET_SOURCE", "")
        if scene_item is None and scene and source:
            scene_item = encode(scene, source)
        return WidgetRunConfig(
            props_path=os.getenv("WIDGET_PROPS_PATH", "scene_item_widget.json"),
            scene_item=scene_item,
            list_only=os.getenv("LIST_SCENE_ITEMS", "0") == "1",
            print_events=os.getenv("PRINT_EVENTS", "1") != "0",
        )


def configure_logging(print_events: bool):
    logging.basicConfig(
        level=logging.INFO if print_events else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def seed_selection(props: PropsStore, scene_item: Optional[str]) -> bool:
    if scene_item is None:
        return False
    try:
        record = decode(scene_item)
    except MalformedKey as e:
        logger.warning("%s Not selecting: %s", _TAG, e)
        return False
    props.set(SCENE_ITEM_PROP, scene_item)
    logger.info("%s Selected %s", _TAG, record.label)
    return True


async def run_widget(
    cfg: WidgetRunConfig,
    channel,
    sink: Optional[DisplaySink] = None,
    stop: Optional[asyncio.Event] = None,
):
    """Mount the widget on channel and keep it mounted until stop is set.

    With cfg.list_only the selectable options are returned instead and the
    widget is unmounted straight away.
    """
    props = PropsStore(Path(cfg.props_path))
    seed_selection(props, cfg.scene_item)

    widget = SceneItemVisibilityWidget(channel, channel, props, sink or ConsoleDisplay())
    await widget.mount()
    try:
        if cfg.list_only:
            schema = await widget.prepare_props()
            return schema[SCENE_ITEM_PROP]["options"]

        logger.info("%s Watching for visibility changes. Press Ctrl+C to exit.", _TAG)
        await (stop or asyncio.Event()).wait()
        return None
    finally:
        await widget.unmount()


def main():
    cfg = WidgetRunConfig.from_env()
    configure_logging(cfg.print_events)
    channel = ObsControlChannel(ObsWsConfig.from_env())
    try:
        options = asyncio.run(run_widget(cfg, channel))
        if options is not None:
            print("Scene items:")
            for key, option in options.items():
                print(f"  {key}: {option['text']}")
    except KeyboardInterrupt:
        logger.info("%s Exiting.", _TAG)
    finally:
        channel.close()
