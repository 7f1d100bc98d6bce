import pytest

from fastapi.testclient import TestClient

from db.session import get_engine, get_sessionmaker, init_db
from factories import FakeChain


@pytest.fixture
def engine():
    engine = get_engine('sqlite://')
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = get_sessionmaker(engine)()
    yield session
    session.close()


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def client(engine, chain):
    from main import create_app
    with TestClient(create_app(engine=engine, chain=chain)) as c:
        yield c
