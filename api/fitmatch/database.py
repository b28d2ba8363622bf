from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from fitmatch.config import DATABASE_URL

Base = declarative_base()


def make_session_factory(url: str, **engine_kwargs) -> sessionmaker:
    if url.startswith("sqlite") and ":memory:" in url:
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine_kwargs.setdefault("poolclass", StaticPool)
    engine = create_engine(url, future=True, **engine_kwargs)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


SessionLocal = make_session_factory(DATABASE_URL)
engine = SessionLocal.kw["bind"]


def create_schema(session_factory: sessionmaker) -> None:
    from fitmatch import models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(bind=session_factory.kw["bind"])
