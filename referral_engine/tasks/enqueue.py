"""Single enqueue path for referral engine tasks."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from celery import current_app

logger = logging.getLogger(__name__)

ORIGIN_HEADER = "referral_engine"


def enqueue_task(
    task_name: str,
    args: Optional[Sequence[Any]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> Any:
    """
    Look up ``task_name`` on the current Celery app and ``apply_async`` it.

    Services call this instead of importing task objects, which keeps the
    service layer free of worker imports. ``options`` go to ``apply_async``
    unchanged apart from the origin header.
    """
    headers = dict(options.pop("headers", None) or {})
    headers.setdefault("origin", ORIGIN_HEADER)

    task = current_app.tasks[task_name]
    logger.debug("Enqueueing %s", task_name)
    return task.apply_async(args=tuple(args or ()), kwargs=kwargs or {}, headers=headers, **options)
