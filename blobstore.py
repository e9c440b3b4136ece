"""
Image storage gateway.

The catalog never stores image bytes itself: images go to an external blob
store and only the resulting URL and deletion handle (publicId) are kept on the
record. Deletions are best effort and never block a record mutation.
"""
import hashlib
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import requests
from fastapi import Depends, HTTPException

from config import Settings, get_settings

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024


class BlobStoreError(Exception):
    pass


class BlobStore(Protocol):
    def upload(self, data: bytes, filename: str, content_type: str) -> Dict[str, str]:
        ...

    def delete(self, public_id: str) -> bool:
        ...


class CloudinaryBlobStore:
    """Signed uploads and deletions against Cloudinary's REST API."""

    base_url = "https://api.cloudinary.com/v1_1"

    def __init__(self, cloud_name: str, api_key: str, api_secret: str,
                 folder: Optional[str] = None, timeout: float = 30.0):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout

    def _sign(self, params: Dict[str, Any]) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1((to_sign + self.api_secret).encode("utf-8")).hexdigest()

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {k: v for k, v in params.items() if v not in (None, "")}
        params["timestamp"] = int(time.time())
        params["signature"] = self._sign(params)
        params["api_key"] = self.api_key
        return params

    def upload(self, data: bytes, filename: str, content_type: str) -> Dict[str, str]:
        url = f"{self.base_url}/{self.cloud_name}/image/upload"
        try:
            resp = requests.post(
                url,
                data=self._signed({"folder": self.folder}),
                files={"file": (filename, data, content_type)},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise BlobStoreError(f"Upload failed: {e}") from e
        if "secure_url" not in body or "public_id" not in body:
            raise BlobStoreError("Upload response missing secure_url/public_id")
        logger.info("Uploaded image %s as %s", filename, body["public_id"])
        return {"url": body["secure_url"], "publicId": body["public_id"]}

    def delete(self, public_id: str) -> bool:
        url = f"{self.base_url}/{self.cloud_name}/image/destroy"
        try:
            resp = requests.post(url, data=self._signed({"public_id": public_id}), timeout=self.timeout)
            resp.raise_for_status()
            return resp.json().get("result") == "ok"
        except (requests.RequestException, ValueError) as e:
            logger.warning("Image delete failed for %s: %s", public_id, e)
            return False


def get_optional_blob_store(settings: Settings = Depends(get_settings)) -> Optional[BlobStore]:
    if not (settings.cloudinary_cloud_name and settings.cloudinary_api_key and settings.cloudinary_api_secret):
        return None
    return CloudinaryBlobStore(
        settings.cloudinary_cloud_name,
        settings.cloudinary_api_key,
        settings.cloudinary_api_secret,
        folder=settings.cloudinary_folder,
    )


def get_blob_store(store: Optional[BlobStore] = Depends(get_optional_blob_store)) -> BlobStore:
    if store is None:
        raise HTTPException(status_code=500, detail="Image storage is not configured")
    return store


def delete_images_quietly(store: BlobStore, public_ids: Iterable[Optional[str]]) -> int:
    """Delete each handle, logging and swallowing failures. Returns how many succeeded."""
    deleted = 0
    for public_id in public_ids:
        if not public_id:
            continue
        try:
            if store.delete(public_id):
                deleted += 1
            else:
                logger.warning("Blob store refused to delete %s", public_id)
        except Exception:
            logger.exception("Error deleting image %s", public_id)
    return deleted


def validate_image(filename: str, content_type: Optional[str], size: int) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"{filename or 'File'} is not an image")
    if size > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail=f"{filename or 'File'} is larger than 5MB")
    if size == 0:
        raise HTTPException(status_code=400, detail=f"{filename or 'File'} is empty")


class UploadSaga:
    """
    Ordered steps with compensations.

    Each step is an action plus a compensation that receives the action's
    result. When a step raises, the compensations of the steps that already
    completed run in reverse order and the error is re-raised. A failing
    compensation is logged and the remaining ones still run.
    """

    def __init__(self):
        self._steps: List[Tuple[Callable[[], Any], Optional[Callable[[Any], Any]]]] = []
        self.results: List[Any] = []

    def add_step(self, action: Callable[[], Any], compensate: Optional[Callable[[Any], Any]] = None) -> "UploadSaga":
        self._steps.append((action, compensate))
        return self

    def run(self) -> List[Any]:
        done: List[Tuple[Any, Optional[Callable[[Any], Any]]]] = []
        for action, compensate in self._steps:
            try:
                result = action()
            except Exception:
                self._rollback(done)
                raise
            done.append((result, compensate))
            self.results.append(result)
        return self.results

    @staticmethod
    def _rollback(done) -> None:
        for result, compensate in reversed(done):
            if compensate is None:
                continue
            try:
                compensate(result)
            except Exception:
                logger.exception("Compensation failed for %r", result)


def upload_images(store: BlobStore, files: List[Tuple[str, str, bytes]]) -> List[Dict[str, str]]:
    """Upload (filename, content_type, data) triples all-or-nothing."""
    saga = UploadSaga()
    for filename, content_type, data in files:
        saga.add_step(
            lambda f=filename, c=content_type, d=data: store.upload(d, f, c),
            lambda uploaded: delete_images_quietly(store, [uploaded["publicId"]]),
        )
    return saga.run()
