"""
Errors raised by the scene item visibility widget.

None of these are fatal to the host: the widget turns every one of them
into a degraded render plus a log line.
"""


class VisibilityWidgetError(Exception):
    pass


class MalformedKey(VisibilityWidgetError, ValueError):
    def __init__(self, key, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed scene item key {key!r}: {reason}")


class DirectoryFetchFailed(VisibilityWidgetError):
    pass


class SourceNotFound(VisibilityWidgetError):
    def __init__(self, scene_name: str, source_name: str):
        self.scene_name = scene_name
        self.source_name = source_name
        super().__init__(f"Source not found in scene: {scene_name} / {source_name}")


class TransportError(VisibilityWidgetError):
    pass
