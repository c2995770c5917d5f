"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, Cloudflare R2 and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import Any, Sequence

from s3explorer.infra.storage.client import (
    BackendError,
    BucketInfo,
    CompletedPart,
    ConnectionConfig,
    MultipartInitError,
    MultipartUpload,
    ObjectEntry,
    ObjectHead,
    ObjectPage,
    ObjectStream,
    StorageError,
)

DEFAULT_REGION = "us-east-1"
STREAM_CHUNK_SIZE = 64 * 1024
MAX_DELETE_BATCH = 1000


def _backend_error(action: str, exc: Exception) -> BackendError:
    """Normalize a botocore failure into a BackendError.

    ClientError carries the S3 error code and HTTP status in ``response``;
    transport errors (timeouts, DNS, refused connections) have neither.
    """
    code: str | None = None
    status: int | None = None
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error") or {}
        code = error.get("Code") or None
        status = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    return BackendError(f"Failed to {action}: {exc}", code=code, status=status)


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations. One instance is built per request
    from the resolved connection profile.
    """

    def __init__(self, *, config: ConnectionConfig) -> None:
        """Initialize the S3 client for one connection profile.

        Args:
            config: Decrypted connection settings.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._config = config
        self._client = self._build_client(config)

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @staticmethod
    def _build_client(config: ConnectionConfig) -> Any:
        """Create a boto3 S3 client from a connection profile."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        addressing_style = "path" if config.force_path_style else "auto"
        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
        )

        try:
            return boto3.client(
                "s3",
                endpoint_url=config.endpoint or None,
                region_name=config.region or DEFAULT_REGION,
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                config=boto_config,
            )
        except ValueError as exc:
            # botocore rejects malformed endpoint URLs at construction time
            raise StorageError(f"Invalid S3 endpoint: {exc}") from exc

    def list_buckets(self) -> list[BucketInfo]:
        try:
            response = self._client.list_buckets()
        except Exception as exc:
            raise _backend_error("list buckets", exc) from exc

        return [
            BucketInfo(
                name=str(bucket.get("Name") or ""),
                creation_date=bucket.get("CreationDate"),
            )
            for bucket in response.get("Buckets") or []
        ]

    def create_bucket(self, *, bucket: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        region = self._config.region or DEFAULT_REGION
        # us-east-1 is the implicit location and rejects an explicit constraint
        if region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            self._client.create_bucket(**params)
        except Exception as exc:
            raise _backend_error("create bucket", exc) from exc

    def delete_bucket(self, *, bucket: str) -> None:
        try:
            self._client.delete_bucket(Bucket=bucket)
        except Exception as exc:
            raise _backend_error("delete bucket", exc) from exc

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str = "",
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int = 1000,
    ) -> ObjectPage:
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": int(max_keys),
        }
        if delimiter:
            params["Delimiter"] = delimiter
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self._client.list_objects_v2(**params)
        except Exception as exc:
            raise _backend_error("list objects", exc) from exc

        entries = [
            ObjectEntry(
                key=str(item.get("Key") or ""),
                size=int(item.get("Size") or 0),
                last_modified=item.get("LastModified"),
                etag=item.get("ETag"),
            )
            for item in response.get("Contents") or []
            if item.get("Key")
        ]
        common_prefixes = [
            str(item["Prefix"])
            for item in response.get("CommonPrefixes") or []
            if item.get("Prefix")
        ]
        next_token = (
            response.get("NextContinuationToken")
            if response.get("IsTruncated")
            else None
        )
        return ObjectPage(
            entries=entries,
            common_prefixes=common_prefixes,
            next_token=next_token or None,
        )

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
    ) -> None:
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key, "Body": body}
        if content_type:
            params["ContentType"] = content_type

        try:
            self._client.put_object(**params)
        except Exception as exc:
            raise _backend_error("upload object", exc) from exc

    def get_object(self, *, bucket: str, object_key: str) -> ObjectStream:
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _backend_error("get object", exc) from exc

        body = response["Body"]
        length = response.get("ContentLength")
        return ObjectStream(
            chunks=body.iter_chunks(chunk_size=STREAM_CHUNK_SIZE),
            content_type=response.get("ContentType"),
            content_length=int(length) if length is not None else None,
        )

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _backend_error("get object metadata", exc) from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
    ) -> None:
        try:
            self._client.copy_object(
                Bucket=bucket,
                Key=object_key,
                CopySource={"Bucket": source_bucket, "Key": source_key},
            )
        except Exception as exc:
            raise _backend_error("copy object", exc) from exc

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _backend_error("delete object", exc) from exc

    def delete_objects(
        self, *, bucket: str, object_keys: Sequence[str]
    ) -> list[str]:
        if not object_keys:
            return []
        if len(object_keys) > MAX_DELETE_BATCH:
            raise ValueError(
                f"Cannot delete more than {MAX_DELETE_BATCH} objects per request"
            )

        try:
            response = self._client.delete_objects(
                Bucket=bucket,
                Delete={
                    "Objects": [{"Key": key} for key in object_keys],
                    "Quiet": True,
                },
            )
        except Exception as exc:
            raise _backend_error("delete objects", exc) from exc

        return [
            str(error.get("Key"))
            for error in response.get("Errors") or []
            if error.get("Key")
        ]

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise _backend_error("create multipart upload", exc) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise MultipartInitError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
            )
        except Exception as exc:
            raise _backend_error(f"upload part {part_number}", exc) from exc

        etag = response.get("ETag")
        if not etag:
            raise BackendError(f"S3 response missing ETag for part {part_number}")
        return CompletedPart(part_number=int(part_number), etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise _backend_error("complete multipart upload", exc) from exc

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise _backend_error("abort multipart upload", exc) from exc

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if filename:
            # Escape quotes in filename for Content-Disposition header
            safe_filename = filename.replace('"', '\\"')
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{safe_filename}"'
            )

        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise _backend_error("generate download URL", exc) from exc

        if not url:
            raise BackendError("Generated presigned URL is empty")

        return str(url)
