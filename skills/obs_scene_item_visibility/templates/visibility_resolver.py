import logging

from skills.obs_scene_item_visibility.templates.control_channel import SceneRequests
from skills.obs_scene_item_visibility.templates.errors import SourceNotFound, TransportError

logger = logging.getLogger(__name__)

_TAG = "[scene-item]"


class VisibilityResolver:
    """Ask OBS whether one scene item is visible. Every call is a fresh round trip."""

    def __init__(self, requests: SceneRequests):
        self.requests = requests

    async def resolve(self, scene_name: str, source_name: str) -> bool:
        try:
            visible = await self.requests.get_visibility(scene_name, source_name)
        except (SourceNotFound, TransportError):
            raise
        except Exception as e:
            raise TransportError(f"Visibility query failed for {scene_name} / {source_name}: {e}") from e

        logger.debug("%s %s / %s visible=%s", _TAG, scene_name, source_name, visible)
        return bool(visible)
