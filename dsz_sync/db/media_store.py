"""
Media store — product images in Supabase Storage plus catalog_media rows.

Media store – downloads supplier images and re-hosts them.
Version: 1.0.0
"""

import logging
import uuid
from typing import List, Optional
from urllib.parse import urlsplit

import httpx

from dsz_sync.core.exceptions import MediaError
from dsz_sync.db.base_store import BaseStore

logger = logging.getLogger("media_store")

TABLE = "catalog_media"
MIN_IMAGE_BYTES = 100

DOWNLOAD_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; dsz-sync/1.0)",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}


class MediaStore(BaseStore):
    """Attach, list and delete product images."""

    def __init__(self, supabase_client=None, http: Optional[httpx.Client] = None) -> None:
        super().__init__(supabase_client)
        self._http = http

    def _download(self, url: str) -> tuple[bytes, str]:
        try:
            if self._http is not None:
                resp = self._http.get(url, headers=DOWNLOAD_HEADERS)
            else:
                with httpx.Client(timeout=httpx.Timeout(30.0, connect=10.0), follow_redirects=True) as client:
                    resp = client.get(url, headers=DOWNLOAD_HEADERS)
        except httpx.RequestError as exc:
            logger.info("image download error url=%s detail=%r", url, exc)
            raise MediaError(f"Image download error: {exc!r}") from exc

        if resp.status_code >= 300:
            raise MediaError(f"Image download failed: {resp.status_code} url={url}")

        content_type = resp.headers.get("content-type") or "image/jpeg"
        body = resp.content
        if not content_type.startswith("image/") or len(body) < MIN_IMAGE_BYTES:
            logger.info(
                "image download got non-image response content_type=%s size=%s url=%s",
                content_type, len(body), url,
            )
            raise MediaError(f"Image download returned non-image content: {content_type}")
        return body, content_type

    @staticmethod
    def _object_path(url: str, local_id: int) -> str:
        name = urlsplit(url).path.rsplit("/", 1)[-1] or f"{uuid.uuid4().hex}.jpg"
        return f"products/{local_id}/{uuid.uuid4().hex[:8]}-{name}"

    def attach_image(self, url: str, local_id: int, is_primary: bool = False) -> int:
        """
        Download url, upload it to the media bucket and record it.

        Raises:
            MediaError: download, upload or row insert failed
        """
        if not url:
            raise MediaError("Image URL is required")

        body, content_type = self._download(url)
        object_path = self._object_path(url, local_id)
        bucket = self._supabase_client.storage_bucket

        try:
            logger.info("supabase storage upload bucket=%s path=%s size=%s", bucket, object_path, len(body))
            self._client.storage.from_(bucket).upload(
                path=object_path,
                file=body,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as exc:
            logger.info("image upload error path=%s detail=%s", object_path, str(exc))
            raise MediaError(f"Image upload error: {exc}") from exc

        public_url = f"{self._supabase_client.storage_public_base}/{object_path}"
        rows = self._insert(TABLE, [{
            "product_id": local_id,
            "url": public_url,
            "source_url": url,
            "storage_path": object_path,
            "is_primary": bool(is_primary),
        }])
        if not rows:
            raise MediaError(f"Media row not created for {url}")
        return rows[0]["id"]

    def get_media_ids(self, local_id: int) -> List[int]:
        rows = self._select(TABLE, "id", {"product_id": local_id})
        return [r["id"] for r in rows]

    def delete_media(self, ids: List[int]) -> int:
        """Remove media rows and their stored objects. Returns rows deleted."""
        if not ids:
            return 0

        query = self._client.table(TABLE).select("id, storage_path").in_("id", ids)
        rows = self._execute(query, TABLE, "select").data or []
        paths = [r["storage_path"] for r in rows if r.get("storage_path")]

        if paths:
            try:
                self._client.storage.from_(self._supabase_client.storage_bucket).remove(paths)
            except Exception as exc:
                raise MediaError(f"Image delete error: {exc}") from exc

        self._execute(self._client.table(TABLE).delete().in_("id", ids), TABLE, "delete")
        logger.info("media deleted count=%s", len(rows))
        return len(rows)
