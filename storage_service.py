"""
Bucket storage for uploaded files
Files live under UPLOAD_FOLDER/<bucket>/<user_id>/ and are served back by public URL
"""

import os
import logging
from datetime import datetime
from typing import Tuple
from flask import current_app, url_for
from werkzeug.utils import secure_filename

RESUMES_BUCKET = 'resumes'
VIDEOS_BUCKET = 'interview-videos'
BUCKETS = (RESUMES_BUCKET, VIDEOS_BUCKET)


class StorageError(Exception):
    pass


def bucket_path(bucket: str) -> str:
    if bucket not in BUCKETS:
        raise StorageError(f"Unknown storage bucket: {bucket}")
    return os.path.join(current_app.config['UPLOAD_FOLDER'], bucket)


def save_upload(bucket: str, user_id: int, file_storage, extension: str) -> Tuple[str, str]:
    """
    Save an uploaded file into a bucket

    Args:
        bucket: Bucket name ('resumes' or 'interview-videos')
        user_id: Owner of the file, used as the folder name
        file_storage: werkzeug FileStorage from request.files
        extension: File extension without the dot

    Returns:
        (object_path, public_url) where object_path is relative to the bucket
    """
    user_dir = os.path.join(bucket_path(bucket), str(user_id))
    os.makedirs(user_dir, exist_ok=True)

    filename = secure_filename(f"{datetime.utcnow().strftime('%Y%m%d%H%M%S%f')}.{extension.lstrip('.')}")
    file_path = os.path.join(user_dir, filename)
    file_storage.save(file_path)

    object_path = f"{user_id}/{filename}"
    public_url = url_for('storage_object', bucket=bucket, object_path=object_path)
    logging.info(f"Stored {bucket}/{object_path} ({os.path.getsize(file_path)} bytes)")
    return object_path, public_url


def local_path(bucket: str, object_path: str) -> str:
    """Absolute filesystem path of an object inside a bucket"""
    return os.path.join(bucket_path(bucket), *object_path.split('/'))
