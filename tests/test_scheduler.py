import threading

from core.scheduler import SaveScheduler


def test_rapid_schedules_collapse_into_one_write(timer_factory, timers):
    written = []
    scheduler = SaveScheduler(written.append, timer_factory=timer_factory)

    for price in (1, 12, 120):
        scheduler.schedule(price)

    assert [t.cancelled for t in timers] == [True, True, False]
    timers[-1].fire()
    assert written == [120]
    assert not scheduler.has_pending


def test_superseded_timer_does_not_write(timer_factory, timers):
    written = []
    scheduler = SaveScheduler(written.append, timer_factory=timer_factory)
    scheduler.schedule("old")
    scheduler.schedule("new")

    # anche se un timer annullato partisse comunque
    timers[0].function(*timers[0].args)
    assert written == []

    timers[1].fire()
    assert written == ["new"]


def test_flush_writes_immediately_and_returns_result(timer_factory, timers):
    scheduler = SaveScheduler(lambda state: f"saved {state}", timer_factory=timer_factory)
    scheduler.schedule("s1")
    assert scheduler.flush() == "saved s1"
    assert timers[0].cancelled
    assert scheduler.flush() is None


def test_cancel_pending(timer_factory, timers):
    written = []
    scheduler = SaveScheduler(written.append, timer_factory=timer_factory)
    scheduler.schedule("s1")
    assert scheduler.cancel_pending()
    timers[0].fire()
    assert written == []
    assert not scheduler.cancel_pending()


def test_uses_configured_delay(timer_factory, timers):
    scheduler = SaveScheduler(lambda s: None, delay=0.3, timer_factory=timer_factory)
    scheduler.schedule("s")
    assert timers[0].interval == 0.3
    assert timers[0].started


def test_flush_waits_for_running_save(timer_factory, timers):
    started = threading.Event()
    release = threading.Event()
    guard = threading.Lock()
    running = []
    peak = []
    written = []

    def callback(state):
        with guard:
            running.append(state)
            peak.append(len(running))
        started.set()
        release.wait(timeout=5)
        with guard:
            running.remove(state)
        written.append(state)

    scheduler = SaveScheduler(callback, timer_factory=timer_factory)
    scheduler.schedule("first")
    fired = threading.Thread(target=timers[0].fire)
    fired.start()
    assert started.wait(timeout=5)

    scheduler.schedule("second")
    flusher = threading.Thread(target=scheduler.flush)
    flusher.start()
    flusher.join(timeout=0.2)
    assert flusher.is_alive()

    release.set()
    fired.join(timeout=5)
    flusher.join(timeout=5)

    assert max(peak) == 1
    assert written == ["first", "second"]
