"""Shared fixtures backed by the sample dataset in data/."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from facility_status.backend import Repository
from facility_status.backends import MemoryRepository
from facility_status.config import Config
from facility_status.loader import FacilityData, load_config, populate
from facility_status.server import create_app
from facility_status.url_transform import UrlTransform

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@pytest.fixture
def config() -> Config:
    """Config pointing at the sample dataset."""
    return Config(DATA_DIR / "facility-status.yaml")


@pytest.fixture
def facility_data(config: Config) -> FacilityData:
    """Sample dataset parsed into typed lists."""
    return load_config(config)


@pytest.fixture
def repository(facility_data: FacilityData) -> Repository:
    """Repository populated with the sample dataset."""
    return populate(MemoryRepository(), facility_data)


@pytest.fixture
def client(repository: Repository) -> TestClient:
    """Test client for the API without a URL transform."""
    return TestClient(create_app(repository))


@pytest.fixture
def proxied_client(repository: Repository) -> TestClient:
    """Test client for the API behind a proxy rewriting root-relative URIs."""
    return TestClient(create_app(repository, UrlTransform("(/|https://iri.example.org)")))
