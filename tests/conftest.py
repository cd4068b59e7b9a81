import pytest

from bookmarkhub import create_app
from bookmarkhub.config import TestConfig
from bookmarkhub.extensions import db
from bookmarkhub.services.storage import ObjectStorage


class FakeS3Client:
    def __init__(self, fail_with=None):
        self.objects = {}
        self.deleted = []
        self.fail_with = fail_with

    def put_object(self, **params):
        if self.fail_with is not None:
            raise self.fail_with
        self.objects[params["Key"]] = params

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://signed.example/{Params['Bucket']}/{Params['Key']}?ttl={ExpiresIn}"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def storage(s3_client):
    return ObjectStorage(
        bucket="bookmarkhub-test",
        region="us-west-2",
        folder_prefix="tenant/",
        client=s3_client,
    )
