"""
Tests for livesubset/collection.py.

Tests cover:
- Lookup by record, mapping, id and cid
- add/remove/reset and the events they fire
- Comparator ordering
- Re-emission of record events
"""

import logging

import pytest
from unittest.mock import MagicMock

from livesubset.collection import Collection, as_item_list, make_sort_key
from livesubset.context import PropagationContext
from livesubset.models import Record


class TestLookup:
    """Test read access."""

    def test_get_by_id_cid_mapping_and_record(self, tasks):
        record = tasks.get(1)
        assert record.get("title") == "File taxes"
        assert tasks.get(record.cid) is record
        assert tasks.get({"id": 1}) is record
        assert tasks.get(record) is record
        assert tasks.get_by_cid(record.cid) is record

    def test_get_other_instance_with_same_id(self, tasks):
        """A different Record carrying a resident id resolves to the resident."""
        assert tasks.get(Record({"id": 2})) is tasks.get(2)

    def test_get_misses(self, tasks):
        assert tasks.get(None) is None
        assert tasks.get(42) is None
        assert tasks.get({"title": "no id"}) is None
        assert tasks.get(["unhashable"]) is None

    def test_sequence_protocol(self, tasks):
        assert len(tasks) == 4
        assert tasks[0].id == 0
        assert tasks.at(-1).id == 3
        assert [r.id for r in tasks] == [0, 1, 2, 3]
        assert 2 in tasks
        assert 9 not in tasks

    def test_helpers(self, tasks):
        assert tasks.pluck("id") == [0, 1, 2, 3]
        assert tasks.ids() == [0, 1, 2, 3]
        assert [r.id for r in tasks.where(archived=1)] == [1, 2]
        assert [r.id for r in tasks.filter(lambda r: "home" in r.get("tags"))] == [1, 3]
        assert tasks.index_of(2) == 2
        assert tasks.index_of(42) == -1
        assert tasks.to_list()[0]["title"] == "Write report"

    def test_each_visits_every_record(self, tasks):
        seen = []
        tasks.each(lambda r: seen.append(r.id))
        assert seen == [0, 1, 2, 3]

    def test_empty_collection_is_truthy(self):
        assert bool(Collection()) is True

    def test_records_is_a_copy(self, tasks):
        tasks.records.clear()
        assert len(tasks) == 4


class TestAdd:
    """Test Collection.add()."""

    def test_add_single_and_list(self):
        collection = Collection()
        collection.add({"id": 1})
        collection.add([{"id": 2}, {"id": 3}])
        assert collection.ids() == [1, 2, 3]

    def test_add_event_arguments(self):
        collection = Collection()
        handler = MagicMock()
        collection.bind("add", handler)

        added = collection.add({"id": 1})

        record, source, ctx = handler.call_args[0]
        assert record is added[0]
        assert source is collection
        assert isinstance(ctx, PropagationContext)

    def test_add_owns_new_records(self):
        collection = Collection()
        record = collection.add({"id": 1})[0]
        assert record.collection is collection

    def test_existing_id_updates_in_place(self, tasks):
        """Adding a known id merges attributes instead of duplicating."""
        added = MagicMock()
        changed = MagicMock()
        tasks.bind("add", added)
        tasks.bind("change:title", changed)
        resident = tasks.get(1)

        result = tasks.add({"id": 1, "title": "Taxes filed"})

        assert result == [resident]
        assert len(tasks) == 4
        assert resident.get("title") == "Taxes filed"
        added.assert_not_called()
        changed.assert_called_once()

    def test_merge_event_for_updated_records(self, tasks):
        merged = MagicMock()
        tasks.bind("merge", merged)

        tasks.add([{"id": 1, "title": "Taxes filed"}, {"id": 2, "title": "Book flights"}, {"id": 9}])

        merged.assert_called_once()
        record, source, ctx = merged.call_args[0]
        assert record is tasks.get(1)
        assert source is tasks
        assert isinstance(ctx, PropagationContext)

    def test_silent_merge_is_not_announced(self, tasks):
        merged = MagicMock()
        tasks.bind("merge", merged)
        tasks.add({"id": 1, "title": "Taxes filed"}, silent=True)
        merged.assert_not_called()

    def test_silent_add(self):
        collection = Collection()
        handler = MagicMock()
        collection.bind("add", handler)

        collection.add({"id": 1}, silent=True)

        assert len(collection) == 1
        handler.assert_not_called()

    def test_invalid_records_dropped(self, task_class, caplog):
        collection = Collection(record_class=task_class)

        with caplog.at_level(logging.WARNING, logger="livesubset.collection"):
            accepted = collection.add([{"id": 1, "title": "ok"}, {"id": 2}])

        assert [r.id for r in accepted] == [1]
        assert collection.ids() == [1]
        assert "Rejected invalid record" in caplog.text

    def test_non_mapping_rejected(self):
        with pytest.raises(TypeError):
            Collection().add(42)

    def test_add_record_instance(self):
        collection = Collection()
        record = Record({"id": 5})
        collection.add(record)
        assert collection.get(5) is record
        assert record.collection is collection


class TestRemove:
    """Test Collection.remove()."""

    def test_remove_by_various_references(self, tasks):
        removed = tasks.remove([0, {"id": 1}, tasks.get(2)])
        assert [r.id for r in removed] == [0, 1, 2]
        assert tasks.ids() == [3]

    def test_remove_fires_per_record(self, tasks):
        handler = MagicMock()
        tasks.bind("remove", handler)
        tasks.remove([0, 1])
        assert handler.call_count == 2

    def test_unknown_items_ignored(self, tasks):
        assert tasks.remove([42]) == []
        assert len(tasks) == 4

    def test_remove_releases_record(self, tasks):
        record = tasks.get(0)
        tasks.remove(record)
        assert record.collection is None
        handler = MagicMock()
        tasks.bind("change", handler)
        record.set(title="gone")
        handler.assert_not_called()


class TestReset:
    """Test Collection.reset()."""

    def test_single_reset_event_with_changed_ids(self):
        collection = Collection([{"id": 1}, {"id": 2}, {"id": 3}])
        handler = MagicMock()
        collection.bind("reset", handler)

        changed = collection.reset([{"id": 2}, {"id": 3}, {"id": 4}])

        assert changed == frozenset({1, 4})
        handler.assert_called_once()
        source, ctx = handler.call_args[0]
        assert source is collection
        assert ctx.changed_ids == frozenset({1, 4})
        assert collection.ids() == [2, 3, 4]

    def test_reset_keeps_resident_instances(self, tasks):
        resident = tasks.get(2)
        tasks.reset([{"id": 2}])
        assert tasks.get(2) is resident
        assert resident.get("title") == "Book flights"

    def test_rewritten_records_count_as_changed(self, tasks, sample_records):
        changed = tasks.reset([{"id": 1, "title": "Done"}, sample_records[2]])
        assert changed == frozenset({0, 1, 3})
        assert tasks.get(1).get("title") == "Done"

    def test_reset_to_empty_fires_once(self, tasks):
        handler = MagicMock()
        tasks.bind("all", handler)

        tasks.reset([])

        assert len(tasks) == 0
        assert [c[0][0] for c in handler.call_args_list] == ["reset"]

    def test_reset_drops_duplicates(self):
        collection = Collection()
        collection.reset([{"id": 1, "v": "a"}, {"id": 1, "v": "b"}])
        assert collection.ids() == [1]
        assert collection.get(1).get("v") == "b"

    def test_silent_reset(self, tasks):
        handler = MagicMock()
        tasks.bind("reset", handler)
        tasks.reset([{"id": 9}], silent=True)
        assert tasks.ids() == [9]
        handler.assert_not_called()


class TestOrdering:
    """Test comparator handling."""

    def test_attribute_comparator(self, sample_records):
        collection = Collection(sample_records, comparator="title")
        assert collection.pluck("title") == ["Book flights", "Call plumber", "File taxes", "Write report"]

    def test_descending_comparator(self, sample_records):
        collection = Collection(sample_records, comparator="id desc")
        assert collection.ids() == [3, 2, 1, 0]

    def test_insertions_stay_sorted(self):
        collection = Collection(comparator="rank")
        collection.add([{"id": "b", "rank": 2}, {"id": "a", "rank": 1}])
        collection.add({"id": "c", "rank": 0})
        assert collection.ids() == ["c", "a", "b"]

    def test_missing_values_sort_last(self):
        for spec in ("rank", "rank desc"):
            collection = Collection([{"id": 1}, {"id": 2, "rank": 5}, {"id": 3, "rank": 1}], comparator=spec)
            assert collection.ids()[-1] == 1

    def test_callable_comparator(self):
        collection = Collection([{"id": 1, "n": "bb"}, {"id": 2, "n": "a"}], comparator=lambda r: len(r.get("n")))
        assert collection.ids() == [2, 1]

    def test_sort_after_mutation(self):
        collection = Collection([{"id": 1, "rank": 1}, {"id": 2, "rank": 2}], comparator="rank")
        handler = MagicMock()
        collection.bind("sort", handler)

        collection.get(1).set(rank=3)
        collection.sort()

        assert collection.ids() == [2, 1]
        handler.assert_called_once()

    def test_sort_without_comparator(self, tasks):
        with pytest.raises(ValueError):
            tasks.sort()

    def test_invalid_direction(self):
        with pytest.raises(ValueError, match="Invalid sort direction"):
            make_sort_key("title sideways")


class TestRecordEvents:
    """Test re-emission of member record events."""

    def test_change_reemitted_with_collection(self, tasks):
        handler = MagicMock()
        tasks.bind("change:title", handler)
        record = tasks.get(0)

        record.set(title="Report written")

        args = handler.call_args[0]
        assert args[0] is record
        assert args[1] is tasks
        assert isinstance(args[-1], PropagationContext)

    def test_id_change_reindexes(self, tasks):
        record = tasks.get(3)
        record.set(id=30)
        assert tasks.get(30) is record
        assert tasks.get(3) is None

    def test_new_record_gets_id_later(self):
        collection = Collection()
        record = collection.add({"title": "draft"})[0]
        assert collection.get(record.cid) is record

        record.set(id=11)

        assert collection.get(11) is record


class TestAsItemList:
    """Test as_item_list()."""

    def test_normalizes_inputs(self, tasks):
        assert as_item_list(None) == []
        assert as_item_list({"id": 1}) == [{"id": 1}]
        assert as_item_list(({"id": 1},)) == [{"id": 1}]
        assert as_item_list(tasks) == tasks.records
