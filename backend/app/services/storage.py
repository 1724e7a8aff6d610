from __future__ import annotations

import logging
from urllib.parse import unquote, urlparse

import boto3
from botocore.client import Config

from app.core.config import settings

logger = logging.getLogger(__name__)


def _get_endpoint_url() -> str:
    if settings.SUPABASE_S3_ENDPOINT_URL:
        return settings.SUPABASE_S3_ENDPOINT_URL
    if not settings.SUPABASE_URL:
        raise ValueError("SUPABASE_URL is required when SUPABASE_S3_ENDPOINT_URL is not set.")
    return f"{settings.SUPABASE_URL.rstrip('/')}/storage/v1/s3"


def _get_bucket_name() -> str:
    if not settings.SUPABASE_STORAGE_BUCKET:
        raise ValueError("SUPABASE_STORAGE_BUCKET is required.")
    return settings.SUPABASE_STORAGE_BUCKET


def _get_client():
    if not settings.SUPABASE_S3_ACCESS_KEY_ID or not settings.SUPABASE_S3_SECRET_ACCESS_KEY:
        raise ValueError("SUPABASE_S3_ACCESS_KEY_ID and SUPABASE_S3_SECRET_ACCESS_KEY are required.")

    return boto3.client(
        "s3",
        endpoint_url=_get_endpoint_url(),
        aws_access_key_id=settings.SUPABASE_S3_ACCESS_KEY_ID,
        aws_secret_access_key=settings.SUPABASE_S3_SECRET_ACCESS_KEY,
        region_name=settings.SUPABASE_S3_REGION,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


def upload_file(file_bytes: bytes, key: str, content_type: str) -> None:
    """Upload (or overwrite) the object at ``key``."""
    client = _get_client()
    client.put_object(
        Bucket=_get_bucket_name(),
        Key=key,
        Body=file_bytes,
        ContentType=content_type,
    )
    logger.debug("Uploaded %s (%d bytes)", key, len(file_bytes))


def get_file(key: str) -> bytes:
    client = _get_client()
    response = client.get_object(Bucket=_get_bucket_name(), Key=key)
    return response["Body"].read()


def delete_files(keys: list[str]) -> None:
    if not keys:
        return
    client = _get_client()
    response = client.delete_objects(
        Bucket=_get_bucket_name(),
        Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
    )
    errors = response.get("Errors") or []
    if errors:
        failed = ", ".join(item.get("Key", "?") for item in errors)
        logger.warning("Storage refused to delete %d of %d objects", len(errors), len(keys))
        raise RuntimeError(f"Storage refused to delete: {failed}")


def public_url(path: str | None) -> str | None:
    if not path:
        return None
    if path.startswith("http://") or path.startswith("https://"):
        return path
    base = settings.SUPABASE_URL.rstrip("/")
    return f"{base}/storage/v1/object/public/{_get_bucket_name()}/{path.lstrip('/')}"


def storage_path_from_url(file_url: str | None, bucket: str | None = None) -> str | None:
    """Map a stored ``file_url`` back to its object key.

    Accepts relative keys as well as public/signed object URLs. Returns None
    when no key can be recovered.
    """
    if not file_url:
        return None
    bucket = bucket or _get_bucket_name()
    value = file_url.strip()

    if not (value.startswith("http://") or value.startswith("https://")):
        value = value.split("?", 1)[0].split("#", 1)[0].lstrip("/")
        return unquote(value) or None

    url_path = unquote(urlparse(value).path)
    marker = f"/public/{bucket}/"
    if marker in url_path:
        key = url_path.split(marker, 1)[1]
        return key or None

    segments = [segment for segment in url_path.split("/") if segment]
    if bucket not in segments:
        return None
    key = "/".join(segments[segments.index(bucket) + 1:])
    return key or None
