import json

from skills.obs_scene_item_visibility.templates.props import (
    SCENE_ITEM_PROP,
    PropsStore,
    SelectionSubscription,
    SubscriptionPhase,
)


def test_subscribe_delivers_stored_values_as_initial():
    store = PropsStore(defaults={SCENE_ITEM_PROP: "Scene1|CamA", "other": 1})
    seen = []
    store.subscribe(lambda key, value, initial: seen.append((key, value, initial)))
    store.set(SCENE_ITEM_PROP, "Scene1|CamB")

    assert seen == [
        (SCENE_ITEM_PROP, "Scene1|CamA", True),
        ("other", 1, True),
        (SCENE_ITEM_PROP, "Scene1|CamB", False),
    ]


def test_unsubscribe_stops_delivery():
    store = PropsStore()
    seen = []
    unsubscribe = store.subscribe(lambda key, value, initial: seen.append(value))
    unsubscribe()
    unsubscribe()
    store.set(SCENE_ITEM_PROP, "Scene1|CamA")
    assert seen == [None]


def test_selection_subscription_seeds_then_forwards_changes():
    store = PropsStore(defaults={SCENE_ITEM_PROP: "Scene1|CamA", "theme": "dark"})
    changes = []
    selection = SelectionSubscription(store, changes.append)

    selection.start()
    assert selection.phase is SubscriptionPhase.LIVE
    assert selection.value == "Scene1|CamA"
    assert changes == []

    store.set("theme", "light")
    store.set(SCENE_ITEM_PROP, "Scene2|Overlay")
    assert changes == ["Scene2|Overlay"]

    selection.stop()
    store.set(SCENE_ITEM_PROP, None)
    assert changes == ["Scene2|Overlay"]


def test_props_persist_to_json(tmp_path):
    path = tmp_path / "widgets" / "scene_item.json"
    PropsStore(path).set(SCENE_ITEM_PROP, "Main%20Scene|Cam%7CA")

    assert json.loads(path.read_text(encoding="utf-8")) == {SCENE_ITEM_PROP: "Main%20Scene|Cam%7CA"}
    assert PropsStore(path).get(SCENE_ITEM_PROP) == "Main%20Scene|Cam%7CA"


def test_unreadable_props_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "scene_item.json"
    path.write_text("{not json", encoding="utf-8")
    assert PropsStore(path).get(SCENE_ITEM_PROP) is None

    path.write_text("[1, 2]", encoding="utf-8")
    assert PropsStore(path).as_dict() == {SCENE_ITEM_PROP: None}
