"""Holds the outcome of the latest build attempt."""
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Union

from builder import (
    DEFAULT_SELECTED,
    FILE_LABELS,
    FILE_ORDER,
    BuilderError,
    BuildInProgressError,
    ProjectFiles,
)


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Ready:
    files: ProjectFiles
    selected: str = DEFAULT_SELECTED


@dataclass(frozen=True)
class Failed:
    message: str


State = Union[Empty, Loading, Ready, Failed]


class ResultStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._state: State = Empty()

    @property
    def state(self) -> State:
        return self._state

    def begin(self):
        with self._lock:
            if isinstance(self._state, Loading):
                raise BuildInProgressError("A build is already in progress.")
            self._state = Loading()

    def succeed(self, files: ProjectFiles):
        with self._lock:
            self._require(Loading)
            self._state = Ready(files=files)
            return self._state

    def fail(self, message: str):
        with self._lock:
            self._require(Loading)
            self._state = Failed(message=message)
            return self._state

    def select(self, key: str):
        with self._lock:
            self._require(Ready)
            if key not in FILE_ORDER:
                raise KeyError(key)
            self._state = Ready(files=self._state.files, selected=key)
            return self._state

    def ready_files(self):
        state = self._state
        return state.files if isinstance(state, Ready) else None

    def _require(self, cls):
        if not isinstance(self._state, cls):
            raise BuilderError(
                f"Expected {cls.__name__} state, store is {type(self._state).__name__}."
            )


def state_to_json(state: State):
    if isinstance(state, Ready):
        return {
            "state": "ready",
            "files": state.files.to_dict(),
            "order": FILE_ORDER,
            "labels": FILE_LABELS,
            "selected": state.selected,
        }
    if isinstance(state, Failed):
        return {"state": "failed", "error": state.message}
    if isinstance(state, Loading):
        return {"state": "loading"}
    return {"state": "empty"}


class ResultStoreRegistry:
    """One ResultStore per page load, so a reload starts from Empty."""

    def __init__(self, max_pages=256):
        self._lock = threading.Lock()
        self._stores = OrderedDict()
        self.max_pages = max_pages

    def get(self, page_id) -> ResultStore:
        with self._lock:
            store = self._stores.get(page_id)
            if store is None:
                store = self._stores[page_id] = ResultStore()
            self._stores.move_to_end(page_id)
            self._evict()
            return store

    def __len__(self):
        return len(self._stores)

    def _evict(self):
        # in-flight attempts are never dropped
        for page_id in list(self._stores):
            if len(self._stores) <= self.max_pages:
                break
            if not isinstance(self._stores[page_id].state, Loading):
                del self._stores[page_id]
