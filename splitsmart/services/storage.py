import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
import httpx

from ..config import Settings
from ..errors import PersistenceError


class KeyValueStore(ABC):
    """
    Durable string key-value storage.

    Implementations raise PersistenceError when the underlying medium
    cannot be read or written.
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None if there is none."""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local storage. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.items: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class FileKeyValueStore(KeyValueStore):
    """
    Storage backed by one JSON document on disk mapping keys to values.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so readers never see a half-written document.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def _set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    async def get_item(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._get, key)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read {self.path}: {e}") from e

    async def set_item(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._set, key, value)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e


class SupabaseKeyValueStore(KeyValueStore):
    """Storage backed by a Supabase table with ``key`` and ``value`` columns."""

    def __init__(self, url: str, service_key: str, table: str = "kv_store", timeout: float = 10.0):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.table = table
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def get_headers(self) -> dict[str, str]:
        """Get headers for Supabase REST API calls."""
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    async def get_item(self, key: str) -> Optional[str]:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    self.endpoint,
                    headers=self.get_headers(),
                    params={"key": f"eq.{key}", "select": "value"},
                    timeout=self.timeout,
                )
            except httpx.RequestError as e:
                raise PersistenceError(f"Failed to read {key!r} from Supabase: {e}") from e

        if response.status_code != 200:
            raise PersistenceError(
                f"Failed to read {key!r} from Supabase: status {response.status_code}"
            )

        try:
            rows = response.json()
            if not rows:
                return None
            return rows[0]["value"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise PersistenceError(f"Unexpected Supabase response for {key!r}: {e}") from e

    async def set_item(self, key: str, value: str) -> None:
        async with httpx.AsyncClient() as client:
            try:
                # Use upsert so the single row is overwritten in place
                response = await client.post(
                    self.endpoint,
                    headers={
                        **self.get_headers(),
                        "Prefer": "resolution=merge-duplicates,return=minimal",
                    },
                    json={"key": key, "value": value},
                    timeout=self.timeout,
                )
            except httpx.RequestError as e:
                raise PersistenceError(f"Failed to write {key!r} to Supabase: {e}") from e

        if response.status_code not in (200, 201, 204):
            raise PersistenceError(
                f"Failed to write {key!r} to Supabase: status {response.status_code}"
            )


def get_storage(settings: Settings) -> KeyValueStore:
    """
    Build the key-value backend named by ``settings.storage_backend``.

    Raises:
        ValueError: If the backend name is unknown, or Supabase is selected
            without a URL and service key
    """
    backend = settings.storage_backend.lower()

    if backend == "memory":
        return MemoryKeyValueStore()

    if backend == "file":
        return FileKeyValueStore(settings.storage_path)

    if backend == "supabase":
        if not settings.supabase_configured:
            raise ValueError("Supabase storage requires supabase_url and supabase_service_key")
        return SupabaseKeyValueStore(
            settings.supabase_url,
            settings.supabase_service_key,
            table=settings.supabase_table,
            timeout=settings.request_timeout,
        )

    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
