import pytest
from fastapi.testclient import TestClient

from outlier.core.config import LimitSettings, Settings
from outlier.core.metrics import metrics_registry, set_instrumentation_enabled
from outlier.main import create_app


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics_registry.reset()
    set_instrumentation_enabled(True)
    yield
    metrics_registry.reset()


@pytest.fixture()
def settings():
    return Settings(
        environment="test",
        limits=LimitSettings(max_body_bytes=1024 * 1024, max_dataset_values=1000),
    )


@pytest.fixture()
def client(settings):
    return TestClient(create_app(settings))
