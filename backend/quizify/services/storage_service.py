import logging
import os
import re
import uuid
from typing import Protocol

from firebase_admin import storage as firebase_storage

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "quizzes_pdfs"


class BlobStore(Protocol):
    def save(self, filename: str, data: bytes, content_type: str) -> str:
        ...


def build_object_name(filename: str) -> str:
    base = os.path.basename(filename or "") or "document.pdf"
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._") or "document.pdf"
    return f"{uuid.uuid4().hex}-{safe}"


class LocalBlobStore:
    def __init__(self, root_dir: str):
        self.root_dir = root_dir

    def save(self, filename: str, data: bytes, content_type: str) -> str:
        os.makedirs(self.root_dir, exist_ok=True)
        path = os.path.join(self.root_dir, build_object_name(filename))
        with open(path, "wb") as handle:
            handle.write(data)
        return path


class FirebaseBlobStore:
    def __init__(self, app, bucket_name: str = ""):
        self.bucket = firebase_storage.bucket(bucket_name or None, app=app)

    def save(self, filename: str, data: bytes, content_type: str) -> str:
        blob = self.bucket.blob(f"{STORAGE_PREFIX}/{build_object_name(filename)}")
        blob.upload_from_string(data, content_type=content_type)
        return blob.public_url
