from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from s3explorer.app.services.bundle import ServiceBundle, get_service_bundle
from s3explorer.infra.db.session import get_session_factory


def get_db() -> Generator:
    session_factory = get_session_factory()
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_services(db: Session = Depends(get_db)) -> ServiceBundle:
    return get_service_bundle(db)
