"""
Product image storage.

Two backends share the same two calls, ``save`` and ``delete``:

* ``LocalImageStore`` writes uploads to a directory that the app serves
  under ``/uploads``.
* ``CloudinaryImageStore`` pushes uploads to Cloudinary with its uploader.
"""

import io
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from config import Settings
from errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}
ALLOWED_FORMATS = ["jpg", "png", "jpeg"]


@dataclass
class StoredImage:
    url: str
    key: str


def image_extension(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError("Only jpg, jpeg and png images are allowed")
    return ext


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class LocalImageStore:
    def __init__(self, directory: str, url_prefix: str = "/uploads"):
        self.directory = directory
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, filename: str, content: bytes) -> StoredImage:
        ext = image_extension(filename)
        os.makedirs(self.directory, exist_ok=True)
        name = f"{_timestamp_ms()}{ext}"
        # two uploads in the same millisecond
        while os.path.exists(os.path.join(self.directory, name)):
            name = f"{_timestamp_ms()}_{os.urandom(2).hex()}{ext}"
        with open(os.path.join(self.directory, name), "wb") as fh:
            fh.write(content)
        return StoredImage(url=f"{self.url_prefix}/{name}", key=name)

    def delete(self, key: str) -> None:
        os.remove(os.path.join(self.directory, os.path.basename(key)))


class CloudinaryImageStore:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "farmers-market"):
        self.folder = folder
        self.credentials = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }

    def save(self, filename: str, content: bytes) -> StoredImage:
        image_extension(filename)
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(content),
                filename=filename,
                folder=self.folder,
                allowed_formats=ALLOWED_FORMATS,
                use_filename=True,
                unique_filename=True,
                secure=True,
                **self.credentials,
            )
        except CloudinaryError as e:
            logger.error("Cloudinary upload failed: %s", e)
            raise DependencyError("Image storage error")
        return StoredImage(url=result["secure_url"], key=result["public_id"])

    def delete(self, key: str) -> None:
        try:
            result = cloudinary.uploader.destroy(key, **self.credentials)
        except CloudinaryError as e:
            logger.error("Cloudinary destroy of %s failed: %s", key, e)
            raise DependencyError("Image storage error")
        if result.get("result") not in ("ok", "not found"):
            raise DependencyError(f"Image delete failed: {result.get('result')}")


def build_image_store(settings: Settings):
    if settings.cloudinary_configured:
        logger.info("Using Cloudinary image storage (%s)", settings.cloudinary_name)
        return CloudinaryImageStore(
            settings.cloudinary_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
        )
    logger.info("Using local image storage in %s", settings.upload_dir)
    return LocalImageStore(settings.upload_dir)
