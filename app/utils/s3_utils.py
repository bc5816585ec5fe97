import os
import re
from urllib.parse import urlparse

import boto3
from botocore.exceptions import NoCredentialsError
from flask import current_app

from .helpers import utcnow

LOCAL_URL_PREFIX = "/api/gallery/files/"


def _client():
    return boto3.client(
        "s3",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name=os.getenv("AWS_REGION"),
    )


def upload_file_to_s3(file, filename, bucket_name, content_type=None):
    s3 = _client()
    extra_args = {"ACL": "public-read"}
    if content_type:
        extra_args["ContentType"] = content_type
    try:
        s3.upload_fileobj(file, bucket_name, filename, ExtraArgs=extra_args)
        base_url = current_app.config.get("S3_BASE_URL") or os.getenv("S3_BASE_URL")
        return f"{base_url}/{filename}"
    except NoCredentialsError:
        raise Exception("AWS credentials not found. Check environment variables.")


def delete_file_from_s3(file_url, bucket_name):
    s3 = _client()
    try:
        key = urlparse(file_url).path.lstrip("/")
        s3.delete_object(Bucket=bucket_name, Key=key)
        return True
    except NoCredentialsError:
        raise Exception("AWS credentials not found. Check environment variables.")
    except Exception as e:
        current_app.logger.error(f"Error deleting file from S3: {e}")
        return False


def safe_filename(filename):
    """Timestamp-prefixed name with anything but ``[A-Za-z0-9._-]`` replaced."""
    base = os.path.basename(filename or "upload")
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", base) or "upload"
    return f"{int(utcnow().timestamp() * 1000)}-{cleaned}"


def store_file(file, filename, content_type=None):
    """Save an upload to S3 when a bucket is configured, else to UPLOAD_FOLDER.

    Returns the public URL of the stored file.
    """
    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if bucket_name:
        return upload_file_to_s3(file, f"gallery/{filename}", bucket_name, content_type)

    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    file.save(os.path.join(folder, filename))
    return f"{LOCAL_URL_PREFIX}{filename}"


def remove_stored_file(file_url):
    if not file_url:
        return False
    if file_url.startswith(LOCAL_URL_PREFIX):
        path = os.path.join(
            current_app.config["UPLOAD_FOLDER"], file_url[len(LOCAL_URL_PREFIX):]
        )
        if os.path.exists(path):
            os.remove(path)
            return True
        return False

    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not bucket_name:
        return False
    return delete_file_from_s3(file_url, bucket_name)
