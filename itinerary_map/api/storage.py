# itinerary_map/api/storage.py
"""Client for the remote key/value storage service and the local key cache."""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from itinerary_map.api.config import get_credential_config, get_storage_config

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A storage request failed or returned something unusable."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


def _status_suffix(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("status"):
        return f" ({payload['status']})"
    return ""


class StorageClient:
    """Reads a whole collection and upserts single records."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 credentials: Optional["CredentialStore"] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or get_storage_config()
        self.credentials = credentials or CredentialStore()
        self.session = session or requests.Session()

    @property
    def collection(self) -> str:
        return self.config["collection"]

    def _headers(self, auth: str) -> Dict[str, str]:
        return {self.config["auth_header"]: auth}

    def _fetch_retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(max(1, int(self.config.get("fetch_attempts", 3)))),
            wait=wait_exponential(multiplier=self.config.get("retry_backoff", 0.5), max=4),
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            before_sleep=lambda state: logger.warning(
                f"Storage GET attempt {state.attempt_number} failed, retrying"
            ),
            reraise=True,
        )

    def fetch_collection(self, auth: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return every record in the configured collection.

        Raises:
            StorageError: On transport failure, non-2xx status or an
                envelope other than ``{"status": "ok", "data": [...]}``.
        """
        auth = auth if auth is not None else self.credentials.load()
        url = f"{self.config['api_base']}/storage/collection"

        try:
            # Reads are idempotent, so transport failures get a few retries.
            for attempt in self._fetch_retrying():
                with attempt:
                    response = self.session.get(
                        url,
                        params={"collection": self.collection},
                        headers=self._headers(auth),
                        timeout=self.config.get("timeout"),
                    )
        except requests.RequestException as e:
            logger.error(f"Storage GET transport error: {e}")
            raise StorageError(f"Storage GET failed: {e}") from e

        payload = self._json_or_none(response)
        if not response.ok:
            raise StorageError(
                f"Storage GET failed: HTTP {response.status_code}{_status_suffix(payload)}",
                status=response.status_code,
            )

        if not isinstance(payload, dict) or payload.get("status") != "ok" or not isinstance(payload.get("data"), list):
            raise StorageError("Storage GET failed: unexpected response", status=response.status_code)

        logger.debug(f"Fetched {len(payload['data'])} records from '{self.collection}'")
        return payload["data"]

    def upsert_record(self, record: Dict[str, Any]) -> Any:
        """Send one record (``key`` plus fields) to the storage service.

        Raises:
            StorageError: If no credential is cached, on transport failure
                or on a non-2xx status.
        """
        auth = self.credentials.load()
        if not auth:
            raise StorageError("No auth available")

        body = {"collection": self.collection}
        body.update(record)
        url = f"{self.config['api_base']}/storage"

        try:
            response = self.session.post(
                url,
                json=body,
                headers=self._headers(auth),
                timeout=self.config.get("timeout"),
            )
        except requests.RequestException as e:
            logger.error(f"Storage update transport error for {record.get('key')}: {e}")
            raise StorageError(f"Storage update failed: {e}") from e

        payload = self._json_or_none(response)
        if not response.ok:
            raise StorageError(
                f"Storage update failed: HTTP {response.status_code}{_status_suffix(payload)}",
                status=response.status_code,
            )

        logger.info(f"Upserted {record.get('key')}")
        return payload

    @staticmethod
    def _json_or_none(response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None


class CredentialStore:
    """The shared access key, cached in a small local JSON file.

    The file may hold other widgets' state under their own keys; only
    ``config["key"]`` is read or written here.
    """

    def __init__(self, config: Optional[Dict[str, str]] = None):
        self.config = config or get_credential_config()

    @property
    def path(self) -> str:
        return self.config["path"]

    def _read_all(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable credential cache {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> str:
        value = self._read_all().get(self.config["key"])
        return "" if value is None else str(value).strip()

    def save(self, value: Optional[str]) -> None:
        """Store the trimmed key; an empty value removes it."""
        clean = str(value or "").strip()
        data = self._read_all()
        if clean:
            data[self.config["key"]] = clean
        else:
            data.pop(self.config["key"], None)

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)


__all__ = ["StorageClient", "StorageError", "CredentialStore"]
