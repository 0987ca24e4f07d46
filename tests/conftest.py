import json

import pytest

from livesubset import config as config_module
from livesubset.collection import Collection
from livesubset.models import Record
from livesubset.predicates import field_eq
from livesubset.subset import Subset


class EventRecorder:
    """Collects every event fired on a bus, via the "all" wildcard."""

    def __init__(self, target):
        self.target = target
        self.events = []
        target.bind("all", self)

    def __call__(self, name, *args):
        self.events.append((name, args))

    def count(self, name):
        return sum(1 for event, _ in self.events if event == name)

    def names(self):
        return [event for event, _ in self.events]

    def args(self, name):
        return [args for event, args in self.events if event == name]

    def clear(self):
        self.events = []


class Task(Record):
    """Record that refuses to exist without a title."""

    def validate(self, attrs):
        if not attrs.get("title"):
            return "title is required"
        return None


@pytest.fixture
def recorder():
    """Factory attaching an EventRecorder to a bus."""
    return EventRecorder


@pytest.fixture
def task_class():
    """Record class with title validation."""
    return Task


@pytest.fixture
def sample_records():
    """Sample task data for testing."""
    return [
        {"id": 0, "title": "Write report", "archived": 0, "tags": ["work"]},
        {"id": 1, "title": "File taxes", "archived": 1, "tags": ["home", "money"]},
        {"id": 2, "title": "Book flights", "archived": 1, "tags": ["travel"]},
        {"id": 3, "title": "Call plumber", "archived": 0, "tags": ["home"]},
    ]


@pytest.fixture
def tasks(sample_records):
    """A parent collection holding the sample records."""
    return Collection(sample_records)


@pytest.fixture
def archived(tasks):
    """Subset of archived tasks, re-evaluated on every change."""
    subset = Subset(parent=tasks, predicate=field_eq("archived", 1), live_update="all", name="archived")
    yield subset
    subset.dispose()


@pytest.fixture
def definitions_file(tmp_path):
    """A YAML file with a handful of subset definitions."""
    path = tmp_path / "subsets.yaml"
    path.write_text(
        """
archived:
  description: Archived tasks
  where:
    archived: 1
  order: title
  live_update: [archived]

active:
  description: Tasks still to do
  where:
    field: archived
    op: falsy
  live_update: all
  exclusive: true

home_archived:
  extends: archived
  where:
    tags:
      any: [home]
"""
    )
    return path


@pytest.fixture
def records_file(tmp_path, sample_records):
    """A JSON file with the sample records."""
    path = tmp_path / "tasks.json"
    path.write_text(json.dumps(sample_records))
    return path


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Keep configuration lookups away from the real home and cwd."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for key in list(config_module.os.environ):
        if key.startswith(config_module.ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.setattr(config_module, "_config", None)
    return {"home": home, "work": work}
