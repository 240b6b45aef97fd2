"""Unit tests for the failed-dispatch outbox."""

import pytest

from conftest import RecordingSink, make_event
from mailpulse.application.dispatch_outbox import DispatchOutbox
from mailpulse.application.scopes import ScopeKeys
from mailpulse.domain.entities.notification import Notification
from mailpulse.domain.errors import StoreUnavailableError
from mailpulse.infrastructure.stores import InMemoryKeyValueStore


def _notification(scope="S", score=12):
    return Notification(scope=scope, final_score=score, events=(make_event(), make_event()))


@pytest.fixture
def outbox(store):
    return DispatchOutbox(store, ScopeKeys("test"), max_attempts=3)


class TestDispatchOutbox:
    """Parking, retrying and giving up."""

    def test_retry_delivers_parked_notification(self, outbox):
        original = _notification()
        outbox.stash(original, "sink down")
        sink = RecordingSink()

        assert outbox.retry_pending(sink) == 1
        assert outbox.pending() == 0
        delivered = sink.notifications[0]
        assert delivered.scope == "S"
        assert delivered.final_score == 12
        assert delivered.events == original.events
        assert delivered.created_at == original.created_at

    def test_retry_stops_at_first_failure(self, outbox):
        outbox.stash(_notification("a"), "down")
        outbox.stash(_notification("b"), "down")
        sink = RecordingSink(fail_times=1)

        assert outbox.retry_pending(sink) == 0
        assert sink.calls == 1
        assert outbox.pending() == 2

        assert outbox.retry_pending(sink) == 2
        assert [n.scope for n in sink.notifications] == ["b", "a"]

    def test_gives_up_into_dead_list(self, outbox):
        outbox.stash(_notification(), "down")
        sink = RecordingSink(fail_times=10)

        outbox.retry_pending(sink)  # attempt 2
        assert outbox.pending() == 1
        outbox.retry_pending(sink)  # attempt 3 -> dead

        assert outbox.pending() == 0
        assert outbox.dead() == 1

    def test_empty_outbox_is_a_no_op(self, outbox):
        assert outbox.retry_pending(RecordingSink()) == 0

    def test_stash_failure_propagates(self, log_records):
        class DownStore:
            def push(self, key, item):
                raise StoreUnavailableError("down")

        with pytest.raises(StoreUnavailableError):
            DispatchOutbox(DownStore()).stash(_notification(), "sink down")
        assert any(r["level"].name == "CRITICAL" for r in log_records)

    def test_unreadable_entry_goes_to_dead_list(self, outbox, store):
        store.push(outbox.keys.outbox, "{not json")
        outbox.stash(_notification("after"), "down")
        sink = RecordingSink()

        assert outbox.retry_pending(sink) == 1
        assert outbox.dead() == 1
        assert store.pop(outbox.keys.dead_outbox) == "{not json"
        assert [n.scope for n in sink.notifications] == ["after"]

    def test_dead_list_failure_is_logged_before_propagating(self, log_records):
        class DeadListDown(InMemoryKeyValueStore):
            def push(self, key, item):
                if key.endswith(":outbox:dead"):
                    raise StoreUnavailableError("down")
                super().push(key, item)

        down = DeadListDown()
        outbox = DispatchOutbox(down, ScopeKeys("test"), max_attempts=2)
        outbox.stash(_notification(), "down")

        with pytest.raises(StoreUnavailableError):
            outbox.retry_pending(RecordingSink(fail_times=1))

        critical = [r for r in log_records if r["level"].name == "CRITICAL"]
        assert len(critical) == 1
        assert '"final_score": 12' in critical[0]["message"]
