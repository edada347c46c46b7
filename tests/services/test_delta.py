"""Tests for lifesync.services.delta."""

from pydantic import BaseModel

from lifesync.services.delta import DeltaDetector, parse_items


class Video(BaseModel):
    id: str
    title: str = ""


def _by_id() -> DeltaDetector:
    return DeltaDetector(identity=lambda item: item["id"])


# ---------------------------------------------------------------------------
# detect_new
# ---------------------------------------------------------------------------


class TestDetectNew:
    def test_reports_only_unseen_items(self):
        previous = [{"id": "b"}, {"id": "a"}]
        current = [{"id": "c"}, {"id": "b"}, {"id": "a"}]
        assert _by_id().detect_new(previous, current) == [{"id": "c"}]

    def test_repoll_with_same_list_is_empty(self):
        items = [{"id": "b"}, {"id": "a"}]
        assert _by_id().detect_new(items, list(items)) == []

    def test_first_poll_is_suppressed_by_default(self):
        assert _by_id().detect_new(None, [{"id": "a"}, {"id": "b"}]) == []

    def test_empty_baseline_is_not_a_first_poll(self):
        result = _by_id().detect_new([], [{"id": "b"}, {"id": "a"}])
        assert result == [{"id": "a"}, {"id": "b"}]

    def test_first_poll_can_be_forced_off(self):
        result = _by_id().detect_new([], [{"id": "b"}, {"id": "a"}], first_poll=False)
        assert result == [{"id": "a"}, {"id": "b"}]

    def test_first_poll_can_be_forced_on(self):
        assert _by_id().detect_new([{"id": "a"}], [{"id": "z"}], first_poll=True) == []

    def test_newest_first_input_is_reversed(self):
        previous = [{"id": "a"}]
        current = [{"id": "d"}, {"id": "c"}, {"id": "b"}, {"id": "a"}]
        result = _by_id().detect_new(previous, current)
        assert [item["id"] for item in result] == ["b", "c", "d"]

    def test_order_key_sorts_oldest_first(self):
        detector = DeltaDetector(
            identity=lambda item: item["id"], order_key=lambda item: item["at"]
        )
        previous = [{"id": "x", "at": 0}]
        current = [{"id": "b", "at": 5}, {"id": "c", "at": 9}, {"id": "a", "at": 1}]
        result = detector.detect_new(previous, current)
        assert [item["id"] for item in result] == ["a", "b", "c"]

    def test_unorderable_keys_fall_back_to_reversal(self):
        detector = DeltaDetector(
            identity=lambda item: item["id"], order_key=lambda item: item["at"]
        )
        previous = [{"id": "x", "at": 0}]
        current = [{"id": "b", "at": "late"}, {"id": "a", "at": 1}]
        result = detector.detect_new(previous, current)
        assert [item["id"] for item in result] == ["a", "b"]

    def test_malformed_items_are_skipped(self):
        previous = [{"id": "a"}, {"no-id": True}]
        current = [{"id": "b"}, {"broken": 1}, {"id": "a"}]
        assert _by_id().detect_new(previous, current) == [{"id": "b"}]

    def test_custom_predicate_sees_previous_item(self):
        detector = DeltaDetector(
            identity=lambda item: item["key"],
            is_newly_true=lambda prev, cur: cur["earned"]
            and not (prev is not None and prev["earned"]),
        )
        previous = [
            {"key": "a", "earned": True},
            {"key": "b", "earned": False},
            {"key": "c", "earned": False},
        ]
        current = [
            {"key": "a", "earned": True},
            {"key": "b", "earned": True},
            {"key": "c", "earned": False},
            {"key": "d", "earned": True},
        ]
        result = detector.detect_new(previous, current)
        assert sorted(item["key"] for item in result) == ["b", "d"]

    def test_works_with_pydantic_records(self):
        detector = DeltaDetector(identity=lambda video: video.id)
        previous = [Video(id="v1")]
        current = [Video(id="v2"), Video(id="v1")]
        assert detector.detect_new(previous, current) == [Video(id="v2")]


# ---------------------------------------------------------------------------
# index
# ---------------------------------------------------------------------------


class TestIndex:
    def test_maps_by_identity(self):
        assert _by_id().index([{"id": "a"}, {"id": "b"}]) == {
            "a": {"id": "a"},
            "b": {"id": "b"},
        }

    def test_skips_items_without_identity(self):
        assert _by_id().index([{"id": "a"}, {}]) == {"a": {"id": "a"}}


# ---------------------------------------------------------------------------
# parse_items
# ---------------------------------------------------------------------------


class TestParseItems:
    def test_validates_records(self):
        parsed = parse_items(Video, [{"id": "v1", "title": "One"}])
        assert parsed == [Video(id="v1", title="One")]

    def test_invalid_records_are_dropped(self):
        parsed = parse_items(Video, [{"id": "v1"}, {"title": "no id"}, "junk"])
        assert parsed == [Video(id="v1")]
