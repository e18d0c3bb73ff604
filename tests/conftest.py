import os

os.environ.setdefault("AWS_BUCKET", "test-bucket")
os.environ.setdefault("ALLOWED_DURATIONS", "30,60,360,1440,10080")
os.environ.setdefault("ID_LENGTH", "8")
os.environ.setdefault("MAX_UPLOAD_SIZE", "10")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from filedrop.core.dependencies import get_s3_client  # noqa: E402
from filedrop.main import app  # noqa: E402

from tests.fakes import InMemoryS3Client  # noqa: E402


@pytest.fixture
def storage():
    return InMemoryS3Client()


@pytest.fixture
def client(storage):
    """Test client wired to the in-memory storage (lifespan not run)."""
    app.dependency_overrides[get_s3_client] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()
