from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def get_engine(cs: str):
    if cs.startswith('sqlite'):
        # one shared connection, so in-memory databases survive across threads
        return create_engine(
            cs,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
    return create_engine(cs, pool_pre_ping=True)


def get_sessionmaker(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# automatically build the models (tests and local dev only, prod schema is managed elsewhere)
def init_db(engine):
    from db.models import profiles, events, participants, checkins  # noqa: F401
    Base.metadata.create_all(bind=engine)


# Dependency
def get_db(request: Request):
    db = request.app.state.SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
