"""
Test configuration and fixtures for the train schedule service.
"""
import pytest
import os
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Set testing environment variable
os.environ["TESTING"] = "true"

# Create test database engine first
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Import app after setting up test database
from app.main import app
from app.db.models import Base, Location, Train  # Import from models file
from app.db.seed import seed_reference_data
from app.db.session import Database
from app.services.broadcast import UpdateBroadcaster

test_database = Database(engine=engine)

# The lifespan keeps an injected database instead of building one from settings
app.state.database = test_database

# Create all tables in the test database
Base.metadata.create_all(bind=engine)


class RecordingBroadcaster(UpdateBroadcaster):
    """Collects published events in memory."""

    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [event.type for event in self.events]


@pytest.fixture(scope="session")
def database():
    """Database handle shared by the app and the service tests."""
    return test_database


@pytest.fixture(scope="session")
def client():
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def cleanup_db():
    """Clean up database after each test."""
    yield
    # Clear all data but keep tables
    with engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
        conn.commit()


@pytest.fixture
def reference_data(database):
    """Seed the sample trains and locations; returns ids keyed by number and code."""
    with database.transaction() as db:
        seed_reference_data(db)
    with database.transaction() as db:
        trains = {train.train_number: train.id for train in db.query(Train).all()}
        locations = {location.code: location.id for location in db.query(Location).all()}
    return {"trains": trains, "locations": locations}


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def schedule_payload(reference_data):
    """Build a camelCase create payload for EXP101 with overridable fields."""
    def build(**overrides):
        payload = {
            "trainId": reference_data["trains"]["EXP101"],
            "departureLocationId": reference_data["locations"]["CTL"],
            "arrivalLocationId": reference_data["locations"]["NTH"],
            "scheduledDeparture": "2024-01-01T08:00:00",
            "scheduledArrival": "2024-01-01T10:00:00",
            "runningDays": [True, True, True, True, True, False, False],
            "effectiveStartDate": "2024-01-01",
            "effectiveEndDate": "2024-12-31",
        }
        payload.update(overrides)
        return payload

    return build
