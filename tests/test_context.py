"""
Tests for livesubset/context.py.

Tests cover:
- Building contexts from None, mappings and legacy flag names
- Copy-on-write helpers
- The propagation guard used by subset proxies
"""

from dataclasses import FrozenInstanceError

import pytest

from livesubset.collection import Collection
from livesubset.context import PropagationContext
from livesubset.predicates import TruePredicate
from livesubset.subset import Subset


class TestCoerce:
    """Test PropagationContext.coerce()."""

    def test_none_gives_defaults(self):
        ctx = PropagationContext.coerce(None)
        assert ctx.silent is False
        assert ctx.noproxy is False
        assert ctx.exclusive is None
        assert ctx.changed_ids is None

    def test_existing_context_is_returned_as_is(self):
        ctx = PropagationContext(silent=True)
        assert PropagationContext.coerce(ctx) is ctx

    def test_flags_apply_on_top(self):
        """Keyword flags override the given context without mutating it."""
        ctx = PropagationContext(noproxy=True)
        quiet = PropagationContext.coerce(ctx, silent=True)

        assert quiet.silent is True
        assert quiet.noproxy is True
        assert ctx.silent is False

    def test_legacy_camel_case_names(self):
        """Mappings may use the camelCase option names."""
        ctx = PropagationContext.coerce({"changedIds": [1, 2], "noproxy": True})
        assert ctx.changed_ids == frozenset({1, 2})
        assert ctx.noproxy is True

    def test_exclusive_collection_alias(self):
        marker = object()
        ctx = PropagationContext.coerce({"exclusiveCollection": marker})
        assert ctx.exclusive is marker

    def test_unknown_flag_rejected(self):
        with pytest.raises(TypeError, match="Unknown propagation flag"):
            PropagationContext.coerce({"quiet": True})

    def test_unsupported_value_rejected(self):
        with pytest.raises(TypeError):
            PropagationContext.coerce(42)


class TestCopies:
    """Test with_() and scoped_to()."""

    def test_with_returns_new_instance(self):
        ctx = PropagationContext()
        changed = ctx.with_(changed_ids={3})
        assert changed is not ctx
        assert changed.changed_ids == frozenset({3})

    def test_scoped_to_pins_noproxy_once(self):
        """The first collection to see a noproxy context owns its scope."""
        first, second = Collection(), Collection()
        ctx = PropagationContext(noproxy=True).scoped_to(first).scoped_to(second)
        assert ctx.scope is first

    def test_scoped_to_ignores_plain_contexts(self):
        ctx = PropagationContext()
        assert ctx.scoped_to(Collection()) is ctx

    def test_contexts_are_immutable(self):
        ctx = PropagationContext()
        with pytest.raises(FrozenInstanceError):
            ctx.silent = True


class TestBlocks:
    """Test the guard deciding which subsets ignore a mutation."""

    @pytest.fixture
    def family(self):
        parent = Collection([{"id": 1}])
        first = Subset(parent=parent, predicate=TruePredicate())
        second = Subset(parent=parent, predicate=TruePredicate())
        nested = Subset(parent=first, predicate=TruePredicate())
        return parent, first, second, nested

    def test_plain_context_blocks_nobody(self, family):
        _, first, second, nested = family
        ctx = PropagationContext()
        assert not any(ctx.blocks(s) for s in (first, second, nested))

    def test_origin_blocks_itself_only(self, family):
        _, first, second, _ = family
        ctx = PropagationContext(origin=first)
        assert ctx.blocks(first) is True
        assert ctx.blocks(second) is False

    def test_noproxy_blocks_subsets_of_scope(self, family):
        """noproxy on the root keeps its subsets out, not grandchildren."""
        parent, first, second, nested = family
        ctx = PropagationContext(noproxy=True, scope=parent)
        assert ctx.blocks(first) is True
        assert ctx.blocks(second) is True
        assert ctx.blocks(nested) is False

    def test_exclusive_blocks_siblings(self, family):
        _, first, second, nested = family
        ctx = PropagationContext(exclusive=first)
        assert ctx.blocks(first) is False
        assert ctx.blocks(second) is True
        assert ctx.blocks(nested) is False

    def test_repr_lists_set_flags(self):
        ctx = PropagationContext(silent=True, changed_ids=frozenset({1}))
        assert repr(ctx) == "PropagationContext(silent, changed_ids=['1'])"
