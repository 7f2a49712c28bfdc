import asyncio

import pytest

from skills.obs_scene_item_visibility.templates.control_channel import SceneListing, VisibilityChanged
from skills.obs_scene_item_visibility.templates.errors import SourceNotFound, TransportError
from skills.obs_scene_item_visibility.templates.props import PropsStore
from skills.obs_scene_item_visibility.templates.widget import SceneItemVisibilityWidget


class FakeRequests:
    """In-memory stand-in for the OBS request side."""

    def __init__(self):
        self.scenes = []
        self.visibility = {}
        self.list_error = None
        self.visibility_error = None
        self.list_calls = 0
        self.visibility_calls = []
        self.set_calls = []
        self._gates = {}
        self._list_gate = None

    def hold(self, scene_name, source_name):
        gate = asyncio.Event()
        self._gates[(scene_name, source_name)] = gate
        return gate

    def hold_list(self):
        self._list_gate = asyncio.Event()
        return self._list_gate

    async def list_scenes(self):
        self.list_calls += 1
        if self._list_gate is not None:
            await self._list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return list(self.scenes)

    async def get_visibility(self, scene_name, source_name):
        self.visibility_calls.append((scene_name, source_name))
        gate = self._gates.pop((scene_name, source_name), None)
        if gate is not None:
            await gate.wait()
        if self.visibility_error is not None:
            raise self.visibility_error
        if (scene_name, source_name) not in self.visibility:
            raise SourceNotFound(scene_name, source_name)
        return self.visibility[(scene_name, source_name)]

    async def set_visibility(self, scene_name, source_name, visible):
        self.set_calls.append((scene_name, source_name, visible))
        if (scene_name, source_name) not in self.visibility:
            raise SourceNotFound(scene_name, source_name)
        self.visibility[(scene_name, source_name)] = visible


class FakeEvents:
    def __init__(self):
        self.subscribers = []
        self.fail = False

    def subscribe_visibility_changed(self, callback):
        if self.fail:
            raise TransportError("event socket refused")
        self.subscribers.append(callback)

        def unsubscribe():
            self.subscribers.remove(callback)

        return unsubscribe

    def emit(self, scene_name, source_name):
        for callback in list(self.subscribers):
            callback(VisibilityChanged(scene_name, source_name))


class RecordingSink:
    def __init__(self):
        self.renders = []

    def render(self, state):
        self.renders.append(state)

    @property
    def last(self):
        return self.renders[-1] if self.renders else None


async def drain(widget):
    while widget._tasks:
        await asyncio.gather(*list(widget._tasks))


@pytest.fixture
def requests_fake():
    fake = FakeRequests()
    fake.scenes = [
        SceneListing("Scene1", ["CamA", "CamB"]),
        SceneListing("Scene2", ["CamA", "Overlay"]),
    ]
    fake.visibility = {
        ("Scene1", "CamA"): True,
        ("Scene1", "CamB"): False,
        ("Scene2", "CamA"): False,
        ("Scene2", "Overlay"): True,
    }
    return fake


@pytest.fixture
def events_fake():
    return FakeEvents()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def props():
    return PropsStore()


@pytest.fixture
def make_widget(requests_fake, events_fake, props, sink):
    def _make():
        return SceneItemVisibilityWidget(requests_fake, events_fake, props, sink)

    return _make


@pytest.fixture(name="drain")
def drain_fixture():
    return drain
