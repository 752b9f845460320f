"""Per-project "last modified" watermark used for conditional export requests."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def get(db: Session, project_id: UUID) -> int:
    """Return the project's watermark, initializing it to now when absent."""

    current = db.execute(
        select(models.ProjectFreshness.last_modified).where(models.ProjectFreshness.project_id == project_id)
    ).scalar_one_or_none()
    if current is not None:
        return current
    return touch(db, project_id)


def touch(db: Session, project_id: UUID, instant: int | None = None) -> int:
    """Advance the watermark to ``max(current, instant)`` and return the stored value.

    The write is a conditional UPDATE, so two transactions committing out of
    order can never move the value backwards.
    """

    instant = now_ms() if instant is None else instant
    result = db.execute(
        update(models.ProjectFreshness)
        .where(
            models.ProjectFreshness.project_id == project_id,
            models.ProjectFreshness.last_modified < instant,
        )
        .values(last_modified=instant)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.debug("Watermark of project %s advanced to %s", project_id, instant)
        return instant

    current = db.execute(
        select(models.ProjectFreshness.last_modified).where(models.ProjectFreshness.project_id == project_id)
    ).scalar_one_or_none()
    if current is None:
        db.add(models.ProjectFreshness(project_id=project_id, last_modified=instant))
        db.flush()
        return instant
    return current


def to_http_date(instant: int) -> str:
    return format_datetime(datetime.fromtimestamp(instant / 1000, tz=timezone.utc), usegmt=True)


def parse_http_date(value: str | None) -> int | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def is_not_modified(watermark: int, if_modified_since: str | None) -> bool:
    """True when the client's copy is at least as new as ``watermark``.

    HTTP dates carry whole seconds, so the watermark is truncated before comparing.
    """

    since = parse_http_date(if_modified_since)
    if since is None:
        return False
    return since >= (watermark // 1000) * 1000
