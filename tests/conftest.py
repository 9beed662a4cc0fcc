import pytest

from cryptotrack.core.database import Base, build_engine, build_session_factory
from cryptotrack.models.alert import PriceAlert, UserProfile
from cryptotrack.services.alert_repository import AlertRepository


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    factory = build_session_factory(engine)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return AlertRepository(session_factory)


@pytest.fixture
def seed_alert(session_factory):
    def _seed(**fields):
        values = {
            "user_id": "user-1",
            "cryptocurrency": "bitcoin",
            "alert_type": "price",
            "condition": "above",
            "email_notification": True,
            "is_active": True,
        }
        values.update(fields)
        db = session_factory()
        try:
            row = PriceAlert(**values)
            db.add(row)
            db.commit()
            return row.id
        finally:
            db.close()

    return _seed


@pytest.fixture
def seed_user(session_factory):
    def _seed(user_id, email):
        db = session_factory()
        try:
            db.add(UserProfile(id=user_id, email=email))
            db.commit()
        finally:
            db.close()

    return _seed
