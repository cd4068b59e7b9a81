import pytest

from bookmarkhub.services.storage import ObjectStorage, StorageError, get_storage


def test_missing_bucket_is_rejected():
    with pytest.raises(StorageError):
        ObjectStorage(bucket="", client=object())


def test_build_key_for_paths_and_uploads(storage):
    assert storage.build_key("upscaled-logos/a.png") == "tenant/upscaled-logos/a.png"

    public_key = storage.build_key("logo.png")
    assert public_key.startswith("tenant/public/uploads/")
    assert public_key.endswith("-logo.png")

    private_key = storage.build_key("logo.png", is_public=False)
    assert private_key.startswith("tenant/uploads/")


def test_private_upload_has_no_acl(storage, s3_client):
    key = storage.upload_bytes(b"data", "notes.txt", "text/plain", is_public=False)

    assert "ACL" not in s3_client.objects[key]
    assert s3_client.objects[key]["Body"] == b"data"


def test_urls_and_delete(storage, s3_client):
    key = storage.upload_bytes(b"png", "logos/x.png")

    assert storage.presigned_url(key, expires_in=60).endswith(f"{key}?ttl=60")

    storage.delete(key)
    assert s3_client.deleted == [key]
    assert key not in s3_client.objects


def test_public_base_url_overrides_bucket_host(s3_client):
    storage = ObjectStorage(
        bucket="assets",
        public_base_url="https://cdn.example.com/",
        client=s3_client,
    )

    assert storage.public_url("/a/b.png") == "https://cdn.example.com/a/b.png"


def test_get_storage_reads_app_config(app):
    app.config["S3_FOLDER_PREFIX"] = "prod/"
    app.config["S3_PUBLIC_BASE_URL"] = "https://cdn.example.com"
    with app.app_context():
        storage = get_storage()

    assert storage.bucket == "bookmarkhub-test"
    assert storage.folder_prefix == "prod/"
    assert storage.public_url("k.png") == "https://cdn.example.com/k.png"
