"""Tests for tasks.py: synchronous fallback and enqueue wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock


def _sample_task(x, y):
    return x + y


def _sample_task_with_kwargs(x, multiplier=1):
    return x * multiplier


class TestSynchronousFallback:
    def test_enqueue_runs_sync_without_redis(self):
        from tasks import enqueue
        assert enqueue(_sample_task, 3, 4) == 7

    def test_enqueue_with_kwargs(self):
        from tasks import enqueue
        assert enqueue(_sample_task_with_kwargs, 3, multiplier=5) == 15

    def test_is_async_available_false(self):
        from tasks import is_async_available
        assert is_async_available() is False


class TestQueue:
    def test_enqueue_uses_queue(self, monkeypatch):
        import tasks
        queue = MagicMock()
        monkeypatch.setattr(tasks, "_queue", queue)
        job = tasks.enqueue(_sample_task, 1, 2)
        queue.enqueue.assert_called_once_with(_sample_task, 1, 2)
        assert job is queue.enqueue.return_value
        assert tasks.is_async_available() is True

    def test_queue_error_runs_inline(self, monkeypatch):
        import tasks
        queue = MagicMock()
        queue.enqueue.side_effect = RuntimeError("redis went away")
        monkeypatch.setattr(tasks, "_queue", queue)
        assert tasks.enqueue(_sample_task, 1, 2) == 3


class TestInitTasks:
    def test_init_without_redis_url(self, app):
        from tasks import init_tasks, is_async_available
        init_tasks(app)
        assert is_async_available() is False

    def test_init_with_unreachable_redis(self, app):
        from tasks import init_tasks, is_async_available
        app.config["REDIS_URL"] = "redis://127.0.0.1:1/0"
        init_tasks(app)
        assert is_async_available() is False
