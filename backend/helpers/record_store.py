"""
Record and media access over the Supabase client.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client

logger = logging.getLogger(__name__)


class RecordStore:
    """Row-level operations on the ideas/dreams tables."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def insert(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        result = self._client.table(table).insert(fields).execute()
        record = result.data[0] if result.data else None
        if not record or record.get("id") is None:
            raise RuntimeError(f"Insert into {table} returned no record")
        return record

    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        result = self._client.table(table).select("*").eq("id", record_id).limit(1).execute()
        return result.data[0] if result.data else None

    def patch(
        self,
        table: str,
        record_id: str,
        fields: Dict[str, Any],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Update one record. Returns False when nothing matched.

        With `generation`, the update only applies while the stored generation
        still equals it. An update never creates a row, so patching a deleted
        record is a no-op.
        """
        query = self._client.table(table).update(fields).eq("id", record_id)
        if generation is not None:
            query = query.eq("generation", generation)
        result = query.execute()
        return bool(result.data)

    def delete(self, table: str, record_id: str) -> bool:
        result = self._client.table(table).delete().eq("id", record_id).execute()
        return bool(result.data)

    def list_by_owner(self, table: str, owner_id: str, descending: bool = True) -> List[Dict[str, Any]]:
        """Owner's records by position; created_at then id break ties so repeated listings agree."""
        result = (
            self._client.table(table)
            .select("*")
            .eq("user_id", owner_id)
            .order("position", desc=descending)
            .order("created_at", desc=descending)
            .order("id", desc=descending)
            .execute()
        )
        return result.data or []


def guess_audio_mime(path: str) -> str:
    name = (path or "").lower()
    if name.endswith(".mp3"):
        return "audio/mpeg"
    if name.endswith(".wav"):
        return "audio/wav"
    if name.endswith((".m4a", ".mp4")):
        return "audio/mp4"
    if name.endswith(".ogg"):
        return "audio/ogg"
    return "audio/webm"


class MediaStore:
    """Image/audio objects in Supabase Storage, addressed by bucket + path."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def upload(self, bucket: str, owner_id: str, filename: Optional[str], data: bytes, content_type: str) -> str:
        """Store bytes under <owner>/<timestamp>_<rand>.<ext> and return the path."""
        default_ext = content_type.split("/")[-1] or "bin"
        file_ext = filename.split(".")[-1] if filename and "." in filename else default_ext
        path = f"{owner_id}/{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}.{file_ext}"
        self._client.storage.from_(bucket).upload(
            path=path,
            file=data,
            file_options={"content-type": content_type},
        )
        logger.info(f"[Media] uploaded {bucket}/{path} ({len(data)} bytes)")
        return path

    def download(self, bucket: str, path: str) -> bytes:
        return self._client.storage.from_(bucket).download(path)

    def public_url(self, bucket: str, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        return self._client.storage.from_(bucket).get_public_url(path)

    def remove(self, bucket: str, path: Optional[str]) -> None:
        if path:
            self._client.storage.from_(bucket).remove([path])
