"""Unit tests for notify/dispatcher.py -- bounded fire-and-forget execution.

Covers:
- submitted jobs run with their arguments
- a failing job is logged, never raised to the submitter
- submissions after shutdown() are dropped with a warning
"""

import logging
import threading

from notify.dispatcher import NotificationDispatcher


def test_job_runs_with_arguments():
    pool = NotificationDispatcher(max_workers=2)
    seen = []
    done = threading.Event()

    def job(a, b):
        seen.append((a, b))
        done.set()

    pool.submit(job, "a@x.com", "alice")
    assert done.wait(timeout=5)
    pool.shutdown(wait=True)
    assert seen == [("a@x.com", "alice")]


def test_failing_job_is_logged_not_raised(caplog):
    pool = NotificationDispatcher(max_workers=1)

    def send_welcome(email):
        raise ConnectionError("smtp down")

    with caplog.at_level(logging.ERROR, logger="socialapp.notify"):
        future = pool.submit(send_welcome, "a@x.com")
        pool.shutdown(wait=True)

    assert future is not None
    assert isinstance(future.exception(), ConnectionError)
    assert any("send_welcome failed" in r.getMessage() for r in caplog.records)


def test_submit_after_shutdown_is_dropped(caplog):
    pool = NotificationDispatcher(max_workers=1)
    pool.shutdown(wait=True)
    calls = []

    with caplog.at_level(logging.WARNING, logger="socialapp.notify"):
        result = pool.submit(calls.append, 1)

    assert result is None
    assert calls == []
    assert any("dropping" in r.getMessage() for r in caplog.records)


def test_shutdown_waits_for_queued_jobs():
    pool = NotificationDispatcher(max_workers=1)
    finished = []
    release = threading.Event()

    def slow(n):
        release.wait(timeout=5)
        finished.append(n)

    for n in range(3):
        pool.submit(slow, n)
    release.set()
    pool.shutdown(wait=True)
    assert sorted(finished) == [0, 1, 2]
