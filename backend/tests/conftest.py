import os

# Keep tests off the developer database and away from real delays
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PAGE_DELAY_SECONDS", "0")
os.environ.setdefault("TRACK_DELAY_SECONDS", "0")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from activity_heatmap.config import Settings
from activity_heatmap.database import get_db, init_db
from activity_heatmap.dependencies import get_rwgps_service, get_strava_service
from activity_heatmap.main import app
from activity_heatmap.services.ridewithgps import RideWithGPSService
from activity_heatmap.services.strava import StravaService


@pytest.fixture
def settings():
    test_settings = Settings()
    test_settings.STRAVA_CLIENT_ID = "1234"
    test_settings.STRAVA_CLIENT_SECRET = "strava-secret"
    test_settings.RWGPS_CLIENT_ID = "rw-client"
    test_settings.RWGPS_CLIENT_SECRET = "rw-secret"
    test_settings.PAGE_DELAY_SECONDS = 0
    test_settings.TRACK_DELAY_SECONDS = 0
    return test_settings


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class Upstream:
    """Records requests and answers them from a route table."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, handler):
        self.routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, text="not found")
        if callable(handler):
            return handler(request)
        return handler

    def transport(self):
        return httpx.MockTransport(self)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def strava(settings, upstream):
    return StravaService(settings, transport=upstream.transport())


@pytest.fixture
def rwgps(settings, upstream):
    return RideWithGPSService(settings, transport=upstream.transport())


@pytest.fixture
def client(db, strava, rwgps):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_strava_service] = lambda: strava
    app.dependency_overrides[get_rwgps_service] = lambda: rwgps
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
