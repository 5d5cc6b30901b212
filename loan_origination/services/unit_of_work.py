"""Commit helper shared by the services"""

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from loan_origination.domain.exceptions import ConflictError


def commit(db: Session) -> None:
    """Commit the session, turning optimistic-lock failures into ConflictError"""
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConflictError("Application was modified by another channel; reload and retry") from e
