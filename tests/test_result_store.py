import pytest

from builder import BuilderError, BuildInProgressError, ProjectFiles
from result_store import Empty, Failed, Loading, Ready, ResultStore, ResultStoreRegistry, state_to_json


@pytest.fixture
def files(sample_files):
    return ProjectFiles.from_dict(sample_files)


def test_initial_state_is_empty():
    store = ResultStore()
    assert store.state == Empty()
    assert store.ready_files() is None
    assert state_to_json(store.state) == {"state": "empty"}


def test_loading_to_ready(files):
    store = ResultStore()
    store.begin()
    assert isinstance(store.state, Loading)

    state = store.succeed(files)
    assert state == Ready(files=files, selected="tree/app.easy")
    assert store.ready_files() is files

    payload = state_to_json(state)
    assert payload["state"] == "ready"
    assert payload["selected"] == "tree/app.easy"
    assert payload["order"][0] == "tree/app.easy"
    assert payload["labels"]["firebase/google-services.json"] == "google-services.json"
    assert payload["files"] == files.to_dict()


def test_loading_to_failed():
    store = ResultStore()
    store.begin()
    state = store.fail("Failed to generate project: boom")
    assert state == Failed(message="Failed to generate project: boom")
    assert store.ready_files() is None
    assert state_to_json(state) == {"state": "failed", "error": "Failed to generate project: boom"}


def test_begin_clears_previous_result(files):
    store = ResultStore()
    store.begin()
    store.succeed(files)

    store.begin()
    assert isinstance(store.state, Loading)
    assert store.ready_files() is None
    assert state_to_json(store.state) == {"state": "loading"}


def test_begin_after_failure_is_allowed():
    store = ResultStore()
    store.begin()
    store.fail("nope")
    store.begin()
    assert isinstance(store.state, Loading)


def test_only_one_attempt_in_flight():
    store = ResultStore()
    store.begin()
    with pytest.raises(BuildInProgressError):
        store.begin()
    assert isinstance(store.state, Loading)


def test_settle_requires_loading(files):
    store = ResultStore()
    with pytest.raises(BuilderError):
        store.succeed(files)
    with pytest.raises(BuilderError):
        store.fail("x")


def test_select(files):
    store = ResultStore()
    with pytest.raises(BuilderError):
        store.select("res/drawable/settings.xml")

    store.begin()
    store.succeed(files)
    state = store.select("res/drawable/settings.xml")
    assert state.selected == "res/drawable/settings.xml"
    assert state.files is files

    with pytest.raises(KeyError):
        store.select("README.md")
    assert store.state.selected == "res/drawable/settings.xml"


def test_registry_keeps_pages_apart(files):
    stores = ResultStoreRegistry()
    a = stores.get("a")
    a.begin()

    b = stores.get("b")
    assert b.state == Empty()
    b.begin()
    b.succeed(files)

    assert stores.get("a") is a
    assert isinstance(a.state, Loading)
    assert isinstance(stores.get("b").state, Ready)


def test_registry_evicts_oldest_settled_pages():
    stores = ResultStoreRegistry(max_pages=2)
    busy = stores.get("busy")
    busy.begin()
    stores.get("idle")
    stores.get("new")

    assert len(stores) == 2
    assert stores.get("busy") is busy
    assert stores.get("idle").state == Empty()
