"""ExpiryScheduler: one replaceable, cancellable timer per appointment id."""
import logging
import threading
from datetime import timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from app.scheduler.expiry_scheduler import ExpiryScheduler, shutdown_scheduler

from tests.conftest import wait_for

LATER = timedelta(hours=1)
SOON = timedelta(milliseconds=50)


class Recorder:
    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[str, str]] = []
        self.fired = threading.Event()
        self.error = error

    def __call__(self, appointment_id: str, token: str) -> None:
        self.calls.append((appointment_id, token))
        self.fired.set()
        if self.error is not None:
            raise self.error


def test_schedule_registers_one_job(scheduler):
    expiry = ExpiryScheduler(scheduler, Recorder())

    expiry.schedule("a1", LATER)

    assert expiry.pending() == ["a1"]
    assert len(scheduler.get_jobs()) == 1


def test_schedule_again_replaces_previous_timer(scheduler):
    expiry = ExpiryScheduler(scheduler, Recorder())
    first = expiry.schedule("a1", LATER)

    second = expiry.schedule("a1", LATER)

    assert first != second
    assert not expiry.is_current("a1", first)
    assert expiry.is_current("a1", second)
    assert len(scheduler.get_jobs()) == 1


def test_timers_for_different_ids_are_independent(scheduler):
    expiry = ExpiryScheduler(scheduler, Recorder())
    expiry.schedule("a1", LATER)
    expiry.schedule("a2", LATER)

    assert expiry.cancel("a1") is True

    assert expiry.pending() == ["a2"]
    assert len(scheduler.get_jobs()) == 1


def test_cancel_removes_timer(scheduler):
    handler = Recorder()
    expiry = ExpiryScheduler(scheduler, handler)
    expiry.schedule("a1", SOON)

    assert expiry.cancel("a1") is True

    assert scheduler.get_jobs() == []
    assert not handler.fired.wait(0.3)


def test_cancel_unknown_id_is_silent(scheduler):
    expiry = ExpiryScheduler(scheduler, Recorder())

    assert expiry.cancel("never-scheduled") is False


def test_fire_calls_handler_with_token_then_forgets_entry(scheduler):
    handler = Recorder()
    expiry = ExpiryScheduler(scheduler, handler)
    token = expiry.schedule("a1", SOON)

    assert handler.fired.wait(5)
    assert handler.calls == [("a1", token)]
    assert wait_for(lambda: expiry.pending() == [])
    # Already fired: cancelling is still not an error
    assert expiry.cancel("a1") is False


def test_failing_handler_is_logged_and_entry_removed(scheduler, caplog):
    handler = Recorder(error=RuntimeError("database unavailable"))
    expiry = ExpiryScheduler(scheduler, handler)

    with caplog.at_level(logging.ERROR, logger="app.scheduler.expiry_scheduler"):
        expiry.schedule("a1", SOON)
        assert handler.fired.wait(5)
        assert wait_for(lambda: expiry.pending() == [])

    assert any("a1" in r.getMessage() and r.exc_info for r in caplog.records)


def test_handler_can_check_its_own_token_while_firing(scheduler):
    seen = []
    done = threading.Event()

    def handler(appointment_id, token):
        seen.append(expiry.is_current(appointment_id, token))
        done.set()

    expiry = ExpiryScheduler(scheduler, handler)
    expiry.schedule("a1", SOON)

    assert done.wait(5)
    assert seen == [True]


def test_discard_forgets_only_the_matching_timer(scheduler):
    expiry = ExpiryScheduler(scheduler, Recorder())
    token = expiry.schedule("a1", LATER)

    assert expiry.discard("a1", "some-other-token") is False
    assert expiry.current_token("a1") == token

    assert expiry.discard("a1", token) is True
    assert expiry.pending() == []
    assert expiry.current_token("a1") is None


def test_main_loop_survives_timers_cancelled_while_firing(scheduler):
    fired = []
    all_fired = threading.Event()
    ids = [f"a{i}" for i in range(30)]

    def handler(appointment_id, token):
        # Cancelling its own timer from inside the job, as a confirm racing the expiry would
        expiry.cancel(appointment_id)
        fired.append(appointment_id)
        if len(fired) >= len(ids) // 2:
            all_fired.set()

    expiry = ExpiryScheduler(scheduler, handler)
    for i, appointment_id in enumerate(ids):
        expiry.schedule(appointment_id, timedelta(0) if i % 2 else LATER)
    for appointment_id in ids[::2]:
        expiry.cancel(appointment_id)

    assert all_fired.wait(5)
    assert sorted(fired) == sorted(ids[1::2])
    assert scheduler._thread.is_alive()

    # Still processing jobs afterwards
    late = Recorder()
    ExpiryScheduler(scheduler, late).schedule("b1", SOON)
    assert late.fired.wait(5)
    assert scheduler._thread.is_alive()


def test_shutdown_right_after_a_fire_leaves_main_loop_clean(monkeypatch):
    thread_errors = []
    monkeypatch.setattr(threading, "excepthook", lambda args: thread_errors.append(args.exc_value))

    for _ in range(10):
        s = BackgroundScheduler(timezone=timezone.utc)
        s.start()
        handler = Recorder()
        expiry = ExpiryScheduler(s, handler)
        expiry.schedule("a1", timedelta(0))
        expiry.schedule("a2", LATER)
        assert handler.fired.wait(5)

        shutdown_scheduler(s)

        assert not s.running
    assert thread_errors == []


def test_shutdown_of_stopped_scheduler_is_noop():
    s = BackgroundScheduler(timezone=timezone.utc)

    shutdown_scheduler(s)

    assert not s.running
