import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_sync.catalog import CatalogStore
from inventory_sync.models import Base


@pytest.fixture()
def session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def catalog(session: Session) -> CatalogStore:
    return CatalogStore(session)
