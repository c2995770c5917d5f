"""Tests for S3 storage client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from s3explorer.infra.storage.client import (
    BackendError,
    CompletedPart,
    ConnectionConfig,
    MultipartInitError,
    MultipartUpload,
)
from s3explorer.infra.storage.s3_client import S3StorageClient


def _client_error(code: str, status: int, operation: str = "Op") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class TestS3StorageClient:
    """Test S3StorageClient implementation."""

    @pytest.fixture
    def mock_s3(self):
        """Mock boto3 S3 client."""
        mock_client = MagicMock()
        with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
            yield mock_client

    @pytest.fixture
    def config(self):
        return ConnectionConfig(
            endpoint="http://localhost:9000",
            access_key="test-key",
            secret_key="test-secret",
            region="us-east-1",
        )

    @pytest.fixture
    def client(self, mock_s3, config):
        """Create S3StorageClient with mocked boto3."""
        return S3StorageClient(config=config)

    def test_list_buckets(self, client, mock_s3):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        mock_s3.list_buckets.return_value = {
            "Buckets": [{"Name": "alpha", "CreationDate": created}, {"Name": "beta"}]
        }

        buckets = client.list_buckets()

        assert [b.name for b in buckets] == ["alpha", "beta"]
        assert buckets[0].creation_date == created
        assert buckets[1].creation_date is None

    def test_create_bucket_sets_location_outside_us_east_1(self, mock_s3):
        client = S3StorageClient(
            config=ConnectionConfig(
                endpoint="http://localhost:9000",
                access_key="k",
                secret_key="s",
                region="eu-west-1",
            )
        )

        client.create_bucket(bucket="photos")

        mock_s3.create_bucket.assert_called_once_with(
            Bucket="photos",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    def test_create_bucket_in_default_region(self, client, mock_s3):
        client.create_bucket(bucket="photos")

        mock_s3.create_bucket.assert_called_once_with(Bucket="photos")

    def test_list_objects_with_delimiter_and_token(self, client, mock_s3):
        mock_s3.list_objects_v2.return_value = {
            "Contents": [{"Key": "docs/a.txt", "Size": 3, "ETag": '"e"'}],
            "CommonPrefixes": [{"Prefix": "docs/img/"}],
            "IsTruncated": True,
            "NextContinuationToken": "next",
        }

        page = client.list_objects(
            bucket="b", prefix="docs/", delimiter="/", continuation_token="tok"
        )

        mock_s3.list_objects_v2.assert_called_once_with(
            Bucket="b",
            Prefix="docs/",
            MaxKeys=1000,
            Delimiter="/",
            ContinuationToken="tok",
        )
        assert [e.key for e in page.entries] == ["docs/a.txt"]
        assert page.entries[0].size == 3
        assert page.common_prefixes == ["docs/img/"]
        assert page.next_token == "next"

    def test_list_objects_last_page_has_no_token(self, client, mock_s3):
        mock_s3.list_objects_v2.return_value = {"IsTruncated": False}

        page = client.list_objects(bucket="b")

        assert page.entries == []
        assert page.next_token is None

    def test_client_error_is_normalized(self, client, mock_s3):
        mock_s3.head_object.side_effect = _client_error("NoSuchKey", 404, "HeadObject")

        with pytest.raises(BackendError) as exc_info:
            client.head_object(bucket="b", object_key="missing")

        assert exc_info.value.code == "NoSuchKey"
        assert exc_info.value.status == 404

    def test_transport_error_has_no_code(self, client, mock_s3):
        mock_s3.list_buckets.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:9000"
        )

        with pytest.raises(BackendError) as exc_info:
            client.list_buckets()

        assert exc_info.value.code is None
        assert exc_info.value.status is None

    def test_delete_objects_returns_failed_keys(self, client, mock_s3):
        mock_s3.delete_objects.return_value = {
            "Errors": [{"Key": "b.txt", "Code": "AccessDenied"}]
        }

        failed = client.delete_objects(bucket="b", object_keys=["a.txt", "b.txt"])

        assert failed == ["b.txt"]
        mock_s3.delete_objects.assert_called_once_with(
            Bucket="b",
            Delete={"Objects": [{"Key": "a.txt"}, {"Key": "b.txt"}], "Quiet": True},
        )

    def test_delete_objects_rejects_oversized_batch(self, client, mock_s3):
        with pytest.raises(ValueError):
            client.delete_objects(bucket="b", object_keys=[str(i) for i in range(1001)])
        mock_s3.delete_objects.assert_not_called()

    def test_copy_object(self, client, mock_s3):
        client.copy_object(
            source_bucket="src", source_key="a.txt", bucket="dst", object_key="b.txt"
        )

        mock_s3.copy_object.assert_called_once_with(
            Bucket="dst",
            Key="b.txt",
            CopySource={"Bucket": "src", "Key": "a.txt"},
        )

    def test_init_multipart_upload(self, client, mock_s3):
        """Test initiating multipart upload."""
        mock_s3.create_multipart_upload.return_value = {
            "UploadId": "test-upload-id",
            "Bucket": "test-bucket",
            "Key": "test/key",
        }

        result = client.init_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            content_type="application/pdf",
        )

        assert isinstance(result, MultipartUpload)
        assert result.upload_id == "test-upload-id"
        mock_s3.create_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            ContentType="application/pdf",
        )

    def test_init_multipart_upload_without_upload_id(self, client, mock_s3):
        mock_s3.create_multipart_upload.return_value = {}

        with pytest.raises(MultipartInitError):
            client.init_multipart_upload(bucket="b", object_key="k")

    def test_upload_part_returns_etag(self, client, mock_s3):
        mock_s3.upload_part.return_value = {"ETag": '"etag-3"'}

        part = client.upload_part(
            bucket="b", object_key="k", upload_id="u", part_number=3, body=b"data"
        )

        assert part == CompletedPart(part_number=3, etag='"etag-3"')

    def test_complete_multipart_upload_sorts_parts(self, client, mock_s3):
        """Test completing multipart upload."""
        parts = [
            CompletedPart(part_number=2, etag="etag2"),
            CompletedPart(part_number=1, etag="etag1"),
        ]

        client.complete_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
            parts=parts,
        )

        call_args = mock_s3.complete_multipart_upload.call_args
        assert call_args[1]["UploadId"] == "test-upload-id"
        assert call_args[1]["MultipartUpload"]["Parts"] == [
            {"ETag": "etag1", "PartNumber": 1},
            {"ETag": "etag2", "PartNumber": 2},
        ]

    def test_abort_multipart_upload(self, client, mock_s3):
        """Test aborting multipart upload."""
        client.abort_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
        )

        mock_s3.abort_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            UploadId="test-upload-id",
        )

    def test_presign_download_with_filename(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://presigned-url"

        url = client.presign_download(
            bucket="b", object_key="docs/a.txt", expires_in=3600, filename="a.txt"
        )

        assert url == "https://presigned-url"
        mock_s3.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={
                "Bucket": "b",
                "Key": "docs/a.txt",
                "ResponseContentDisposition": 'attachment; filename="a.txt"',
            },
            ExpiresIn=3600,
        )

    def test_presign_download_empty_url(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = ""

        with pytest.raises(BackendError):
            client.presign_download(bucket="b", object_key="k", expires_in=60)


def test_build_client_uses_path_style_addressing():
    config = ConnectionConfig(
        endpoint="http://minio:9000", access_key="k", secret_key="s"
    )
    with patch("boto3.client") as boto_client:
        S3StorageClient(config=config)

    kwargs = boto_client.call_args.kwargs
    assert kwargs["endpoint_url"] == "http://minio:9000"
    assert kwargs["aws_access_key_id"] == "k"
    assert kwargs["config"].s3 == {"addressing_style": "path"}


def test_config_repr_hides_secrets():
    config = ConnectionConfig(
        endpoint="http://minio:9000", access_key="AKIA123", secret_key="topsecret"
    )

    assert "AKIA123" not in repr(config)
    assert "topsecret" not in repr(config)
