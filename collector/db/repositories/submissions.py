"""
Submission repository functions.

New submissions are written through the gap-filling allocator so each row
receives the smallest free positive ``id``.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from collector.db import models, schemas
from collector.db.allocator import GapFillingAllocator


def create_submission(
    db: Session,
    submission: schemas.SubmissionCreate,
    *,
    allocator: GapFillingAllocator,
    on_locked: Optional[Callable[[], None]] = None,
) -> int:
    return allocator.allocate_and_insert(
        db,
        models.Submission.__table__,
        submission.payload(),
        on_locked=on_locked,
    )


def get_submission(db: Session, submission_id: int):
    return db.query(models.Submission).filter(models.Submission.id == submission_id).first()


def get_submission_ids(db: Session) -> List[int]:
    return list(db.scalars(select(models.Submission.id).order_by(models.Submission.id.asc())))
