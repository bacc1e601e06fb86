"""
Tests for the name/screenshot pairing rules.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from importflow.intake.correlation import CorrelationEngine, DecisionKind
from importflow.intake.session_store import SessionStore
from importflow.utils.media import FetchedMedia

SENDER = "whatsapp:+50377778888"
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def image(label: str) -> FetchedMedia:
    return FetchedMedia(content=label.encode(), content_type="image/jpeg")


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(idle_ttl_seconds=7200, lock_timeout_seconds=1)


@pytest.fixture
def engine(store: SessionStore) -> CorrelationEngine:
    return CorrelationEngine(store, pairing_window_seconds=5, sticky_name_ttl_seconds=None)


def contents(decision) -> list[bytes]:
    return [a.content for a in decision.attachments]


class TestScenarios:
    def test_a_text_with_two_images(self, engine: CorrelationEngine):
        decision = engine.correlate(SENDER, "Maria Lopez", [image("a"), image("b")], at(0))

        assert decision.kind == DecisionKind.COMMIT
        assert decision.should_commit
        assert decision.customer_name == "Maria Lopez"
        assert contents(decision) == [b"a", b"b"]

    def test_b_image_then_name_within_window(self, engine: CorrelationEngine):
        first = engine.correlate(SENDER, None, [image("shot")], at(0))
        second = engine.correlate(SENDER, "Carlos", [], at(3))

        assert first.kind == DecisionKind.BUFFERED
        assert second.kind == DecisionKind.COMMIT
        assert second.customer_name == "Carlos"
        assert contents(second) == [b"shot"]
        assert second.dropped_count == 0

    def test_c_image_then_name_after_window(self, engine: CorrelationEngine, store):
        engine.correlate(SENDER, None, [image("shot")], at(0))
        decision = engine.correlate(SENDER, "Carlos", [], at(10))

        assert decision.kind == DecisionKind.NAME_SET
        assert decision.attachments == ()
        assert decision.dropped_count == 1
        assert store.get_or_create(SENDER).buffer == []

        # Carlos is now sticky for the next screenshot
        follow_up = engine.correlate(SENDER, None, [image("next")], at(20))
        assert follow_up.kind == DecisionKind.COMMIT
        assert follow_up.customer_name == "Carlos"

    def test_d_sticky_name_an_hour_later(self, engine: CorrelationEngine):
        engine.correlate(SENDER, "Ana", [], at(0))

        decision = engine.correlate(SENDER, None, [image("late")], at(3600))

        assert decision.kind == DecisionKind.COMMIT
        assert decision.customer_name == "Ana"
        assert contents(decision) == [b"late"]


class TestTextAndMedia:
    def test_abandons_buffered_screenshots(self, engine: CorrelationEngine, store):
        engine.correlate(SENDER, None, [image("old")], at(0))

        decision = engine.correlate(SENDER, "Maria", [image("new")], at(1))

        assert contents(decision) == [b"new"]
        assert decision.abandoned_count == 1
        assert decision.dropped_count == 0
        assert store.get_or_create(SENDER).buffer == []

    def test_expired_and_abandoned_are_counted_apart(self, engine: CorrelationEngine):
        engine.correlate(SENDER, None, [image("stale")], at(0))
        engine.correlate(SENDER, None, [image("recent")], at(8))

        decision = engine.correlate(SENDER, "Maria", [image("new")], at(9))

        assert contents(decision) == [b"new"]
        assert decision.dropped_count == 1
        assert decision.abandoned_count == 1

    def test_name_is_retained(self, engine: CorrelationEngine):
        engine.correlate(SENDER, "Maria", [image("a")], at(0))

        decision = engine.correlate(SENDER, None, [image("b")], at(30))

        assert decision.customer_name == "Maria"

    def test_new_name_replaces_sticky_name(self, engine: CorrelationEngine):
        engine.correlate(SENDER, "Ana", [], at(0))
        engine.correlate(SENDER, "Luis", [], at(10))

        decision = engine.correlate(SENDER, None, [image("x")], at(20))

        assert decision.customer_name == "Luis"


class TestTextOnly:
    def test_claims_only_in_window_screenshots(self, engine: CorrelationEngine):
        engine.correlate(SENDER, None, [image("expired")], at(0))
        engine.correlate(SENDER, None, [image("fresh")], at(4))

        decision = engine.correlate(SENDER, "Carlos", [], at(8))

        assert decision.kind == DecisionKind.COMMIT
        assert contents(decision) == [b"fresh"]
        assert decision.dropped_count == 1

    def test_window_boundary_is_inclusive(self, engine: CorrelationEngine):
        engine.correlate(SENDER, None, [image("edge")], at(0))

        decision = engine.correlate(SENDER, "Carlos", [], at(5))

        assert contents(decision) == [b"edge"]

    def test_multiple_buffered_events_form_one_group(self, engine: CorrelationEngine):
        engine.correlate(SENDER, None, [image("a")], at(0))
        engine.correlate(SENDER, None, [image("b"), image("c")], at(1))

        decision = engine.correlate(SENDER, "Carlos", [], at(2))

        assert contents(decision) == [b"a", b"b", b"c"]

    def test_name_without_buffer(self, engine: CorrelationEngine, store):
        decision = engine.correlate(SENDER, "  Ana  ", [], at(0))

        assert decision.kind == DecisionKind.NAME_SET
        assert decision.customer_name == "Ana"
        assert decision.dropped_count == 0
        assert store.get_or_create(SENDER).customer_name == "Ana"

    def test_screenshots_pruned_while_buffering_are_reported(self, engine: CorrelationEngine):
        engine.correlate(SENDER, None, [image("stale")], at(0))
        # The second screenshot arrives after the first expired and prunes it
        engine.correlate(SENDER, None, [image("fresh")], at(20))

        decision = engine.correlate(SENDER, "Carlos", [], at(22))

        assert contents(decision) == [b"fresh"]
        assert decision.dropped_count == 1


class TestMediaOnly:
    def test_buffers_without_name(self, engine: CorrelationEngine, store):
        decision = engine.correlate(SENDER, None, [image("a")], at(0))

        assert decision.kind == DecisionKind.BUFFERED
        session = store.get_or_create(SENDER)
        assert [a.content for a in session.buffer] == [b"a"]
        assert session.buffer[0].received_at == at(0)

    def test_blank_text_is_no_text(self, engine: CorrelationEngine):
        decision = engine.correlate(SENDER, "   ", [image("a")], at(0))

        assert decision.kind == DecisionKind.BUFFERED

    def test_empty_event_is_ignored(self, engine: CorrelationEngine):
        assert engine.correlate(SENDER, None, [], at(0)).kind == DecisionKind.IGNORED

    def test_senders_are_independent(self, engine: CorrelationEngine):
        engine.correlate("whatsapp:+1", "Ana", [], at(0))

        decision = engine.correlate("whatsapp:+2", None, [image("x")], at(1))

        assert decision.kind == DecisionKind.BUFFERED


class TestStickyNameTimeout:
    def test_name_expires_when_ttl_configured(self, store: SessionStore):
        engine = CorrelationEngine(store, pairing_window_seconds=5, sticky_name_ttl_seconds=600)
        engine.correlate(SENDER, "Ana", [], at(0))

        within = engine.correlate(SENDER, None, [image("a")], at(599))
        after = engine.correlate(SENDER, None, [image("b")], at(601))

        assert within.kind == DecisionKind.COMMIT
        assert after.kind == DecisionKind.BUFFERED
        assert store.get_or_create(SENDER).customer_name is None

    def test_no_expiry_by_default(self, engine: CorrelationEngine):
        engine.correlate(SENDER, "Ana", [], at(0))

        decision = engine.correlate(SENDER, None, [image("a")], at(30 * 24 * 3600))

        assert decision.customer_name == "Ana"


@pytest.mark.parametrize("seed", range(25))
def test_expired_screenshots_never_claimed(seed: int):
    """Randomized arrival times: a text only ever claims in-window screenshots."""
    rng = random.Random(seed)
    engine = CorrelationEngine(
        SessionStore(idle_ttl_seconds=7200), pairing_window_seconds=5, sticky_name_ttl_seconds=None
    )

    clock = 0.0
    arrivals: dict[bytes, float] = {}
    for index in range(rng.randint(1, 12)):
        clock += rng.uniform(0, 8)
        label = f"shot-{index}".encode()
        arrivals[label] = clock
        engine.correlate(SENDER, None, [FetchedMedia(label, "image/png")], at(clock))

    text_time = clock + rng.uniform(0, 12)
    decision = engine.correlate(SENDER, "Customer", [], at(text_time))

    claimed = set(contents(decision))
    in_window = {label for label, t in arrivals.items() if text_time - t <= 5}
    # Anything in window at text time was also in window at every earlier prune
    assert claimed == in_window
    assert decision.dropped_count == len(arrivals) - len(in_window)
    assert decision.kind == (DecisionKind.COMMIT if claimed else DecisionKind.NAME_SET)
