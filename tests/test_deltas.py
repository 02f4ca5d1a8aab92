"""Tests for deletion detection and collection deltas."""

from opsdash.sync.deltas import (
    CollectionDelta,
    apply_delta,
    compute_delta,
    detect_deletions,
)
from tests.fakes import make_customer


class TestDetectDeletions:
    """ids(previous) - ids(current), nothing more."""

    def test_removed_record_detected_despite_edits(self):
        """[A, B, C] -> [A', C']: exactly B is deleted."""
        a, b, c = make_customer("A"), make_customer("B"), make_customer("C")
        edited_a = a.model_copy(update={"monthly_revenue": 999.0})
        edited_c = c.model_copy(update={"notes": "changed"})

        assert detect_deletions([a, b, c], [edited_a, edited_c]) == {b.id}

    def test_additions_are_not_deletions(self):
        a = make_customer("A")
        assert detect_deletions([a], [a, make_customer("New")]) == set()

    def test_everything_removed(self):
        a, b = make_customer("A"), make_customer("B")
        assert detect_deletions([a, b], []) == {a.id, b.id}


class TestComputeDelta:
    """Tests for added/updated/removed classification."""

    def test_classification(self):
        a, b, c = make_customer("A"), make_customer("B"), make_customer("C")
        edited_a = a.model_copy(update={"company_name": "A2"})
        d = make_customer("D")

        delta = compute_delta([a, b, c], [edited_a, c, d])

        assert delta.added == [d]
        assert delta.updated == [edited_a]
        assert delta.removed == [b.id]

    def test_unchanged_is_empty(self):
        a = make_customer("A")
        assert compute_delta([a], [a.model_copy()]).is_empty

    def test_removed_keeps_previous_order(self):
        items = [make_customer(name) for name in "ABCD"]
        delta = compute_delta(items, [items[1]])
        assert delta.removed == [items[0].id, items[2].id, items[3].id]


class TestApplyDelta:
    """Tests for building a collection from an explicit delta."""

    def test_apply(self):
        a, b = make_customer("A"), make_customer("B")
        edited_b = b.model_copy(update={"country": "FR"})
        c = make_customer("C")

        result = apply_delta([a, b], CollectionDelta(added=[c], updated=[edited_b], removed=[a.id]))

        assert result == [edited_b, c]

    def test_added_existing_id_replaces(self):
        a = make_customer("A")
        renamed = a.model_copy(update={"company_name": "A2"})
        assert apply_delta([a], CollectionDelta(added=[renamed])) == [renamed]

    def test_unknown_removal_ignored(self):
        a = make_customer("A")
        assert apply_delta([a], CollectionDelta(removed=["missing"])) == [a]
