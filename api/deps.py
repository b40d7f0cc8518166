"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from contextlib import contextmanager
from typing import Generator
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db


def request_session_scope(db: Session):
    """
    Session scope factory that reuses the request session

    Each scope commits on success and rolls back on error, mirroring
    database.get_db_context without opening a new session.
    """
    @contextmanager
    def _scope() -> Generator[Session, None, None]:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    return _scope


async def get_current_user_id(
    user_id: int,
    db: Session = Depends(get_db)
) -> int:
    """
    Validate user exists and return user ID
    """
    from models import User

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )

    return user_id


def get_snapshot_service(db: Session = Depends(get_db)):
    """Snapshot service bound to the request session"""
    from services.snapshot_repository import SQLAlchemySnapshotRepository
    from services.snapshot_service import SnapshotService

    return SnapshotService(repository=SQLAlchemySnapshotRepository(request_session_scope(db)))


def get_snapshot_refresh_queue():
    """Background refresh queue used by write endpoints"""
    from actions.snapshot_refresh import snapshot_refresh_queue
    return snapshot_refresh_queue


class ServiceDependency:
    """
    Dependency injection for services
    """

    @staticmethod
    def get_intake_service():
        from services.intake_service import intake_service
        return intake_service


# Service dependency instances
services = ServiceDependency()
