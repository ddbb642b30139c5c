"""Background jobs via RQ with synchronous fallback.

Used for work that should not hold up a response, such as sending the
contact-form email. Without Redis the job simply runs inline.

Usage:
    from tasks import enqueue
    enqueue(EmailService._do_send, to, subject, html, text, config)
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_queue = None


def init_tasks(app) -> None:
    """Create the RQ queue if Redis is reachable. Call once from create_app()."""
    global _queue
    _queue = None

    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        app.logger.info("Task backend: synchronous (no REDIS_URL)")
        return

    import redis
    from rq import Queue

    try:
        conn = redis.Redis.from_url(redis_url, socket_connect_timeout=2)
        conn.ping()
    except redis.RedisError as e:
        app.logger.warning("Task backend: synchronous (Redis error: %s)", e)
        return

    _queue = Queue("portal", connection=conn)
    app.logger.info("Task backend: RQ (%s)", redis_url)


def enqueue(func, *args, **kwargs):
    """Push a job to RQ if available, else call it now.

    Returns the RQ Job or the function's return value.
    """
    if _queue is not None:
        try:
            job = _queue.enqueue(func, *args, **kwargs)
            logger.debug("Enqueued %s (job=%s)", func.__name__, job.id)
            return job
        except Exception as e:
            logger.warning("RQ enqueue failed (%s), running inline: %s", func.__name__, e)

    logger.debug("Running %s synchronously", func.__name__)
    return func(*args, **kwargs)


def is_async_available() -> bool:
    return _queue is not None
