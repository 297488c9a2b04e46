import io
import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient
from PIL import Image

# Set test environment variable BEFORE importing app modules
os.environ["TESTING"] = "true"

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "image-hoster-bucket"
os.environ["IMAGES_TABLE"] = "Images"
os.environ["TAGS_TABLE"] = "Tags"
os.environ["COMMENTS_TABLE"] = "Comments"
# Clear the AWS_ENDPOINT_URL so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)

from imagehoster.main import app
from imagehoster.storage.dynamodb import DynamoDBService
from imagehoster.storage.s3 import S3Service


def make_png_bytes(color="red"):
    """Generate a simple valid PNG in-memory."""
    img = Image.new("RGB", (10, 10), color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_png_bytes()


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def aws(aws_credentials):
    with mock_aws():
        yield


@pytest.fixture(scope="function")
def db(aws):
    """A DynamoDBService whose tables live in moto."""
    return DynamoDBService()


@pytest.fixture(scope="function")
def s3(aws):
    """An S3Service whose bucket lives in moto."""
    return S3Service()


@pytest.fixture(scope="function")
def test_client(aws_credentials):
    with mock_aws():
        # The lifespan creates the bucket and tables inside the moto context
        with TestClient(app) as client:
            yield client
