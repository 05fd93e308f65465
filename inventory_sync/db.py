from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker

from inventory_sync.config import SyncSettings


def build_engine(settings: SyncSettings) -> Engine:
    return create_engine(settings.database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
