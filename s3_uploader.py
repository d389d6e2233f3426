import os
import logging
import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from media_helpers import (IMAGE_EXTENSIONS, VIDEO_EXTENSIONS, ItemResult, RunSummary,
                           get_file_name, get_file_extension, list_files)
from media_probe import get_media_info
from media_store import update_media

DEFAULT_UPLOAD_DIR = "files"
UPLOAD_ACL = "public-read"

# ======================
# S3 Operations
# ======================

def get_s3_client(config, timeout=None):
    client_kwargs = {
        'service_name': 's3',
        'aws_access_key_id': config.access_key_id,
        'aws_secret_access_key': config.secret_access_key,
    }
    if config.aws_region:
        client_kwargs['region_name'] = config.aws_region
    if timeout is not None:
        client_kwargs['config'] = Config(connect_timeout=timeout, read_timeout=timeout)
    return boto3.client(**client_kwargs)


def upload_file_to_s3(s3, bucket_name, file_path):
    """Upload ``file_path`` under its base name and return the object's ETag."""
    file_name = get_file_name(file_path)
    with open(file_path, "rb") as f:
        body = f.read()
    try:
        response = s3.put_object(Bucket=bucket_name, Key=file_name, Body=body, ACL=UPLOAD_ACL)
    except ClientError as e:
        logging.error(f"[x] Error uploading file {file_path}: {e.response['Error'].get('Code')}")
        raise
    logging.info(f"Uploaded {file_path} to s3://{bucket_name}/{file_name}")
    return response.get("ETag")

# ======================
# Record update
# ======================

def build_record_update(extension, etag, media_info, size):
    """Fields to merge into the media record, or None for unsupported types."""
    if extension in VIDEO_EXTENSIONS:
        data = {"etag": f"{etag}", "size": f"{size}"}
        if media_info.get("duration") is not None:
            data["duration"] = f"{media_info['duration']}"
        return data
    if extension in IMAGE_EXTENSIONS:
        return {
            "etag": f"{etag}",
            "height": f"{media_info['height']}",
            "width": f"{media_info['width']}",
            "size": f"{size}",
        }
    return None

# ======================
# Upload flow
# ======================

def upload_files(collection, s3, bucket_name, root=DEFAULT_UPLOAD_DIR, media_info=None, timeout=None):
    """Upload every file under ``root`` and record its metadata.

    Each file is handled on its own: a failure is logged and counted, then
    the next file is processed.
    """
    media_info = media_info or (lambda path: get_media_info(path, timeout=timeout))
    files = list_files(root)
    summary = RunSummary(flow="upload", total=len(files))
    current = 0

    for file_path in files:
        current += 1
        file_name = get_file_name(file_path)
        try:
            logging.info(f"Processing file {current}/{summary.total} ({file_name})")

            etag = upload_file_to_s3(s3, bucket_name, file_path)
            extension = get_file_extension(file_name)
            info = {}
            if extension in IMAGE_EXTENSIONS or extension in VIDEO_EXTENSIONS:
                info = media_info(file_path)
            size = os.stat(file_path).st_size

            data = build_record_update(extension, etag, info, size)
            if data is None:
                logging.info(f"No record update for {file_name}: unsupported extension {extension}")
                summary.record(ItemResult(name=file_name, skipped=True, reason="unsupported extension"))
                continue

            matched, modified = update_media(collection, file_name, data)
            logging.info(f"Found: {matched} - Modified: {modified}")
            summary.record(ItemResult(name=file_name, matched_count=matched, modified_count=modified, fields=data))
        except Exception as e:
            logging.error(f"[x] Error uploading file {file_path}: {e}")
            summary.record(ItemResult(name=file_name, ok=False, reason=str(e)))

    if summary.errors == 0:
        logging.info("The process has ended without errors.")
    else:
        logging.info(f"The process ended with {summary.errors} errors.")

    return summary
