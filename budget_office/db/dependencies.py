"""Request-scoped session dependency."""

from collections.abc import Iterator

from sqlalchemy.orm import Session

from budget_office.db.session import SessionLocal


def get_db_session() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
