from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import requests

from identity_pool.core.errors import StoreError
from identity_pool.core.logger import get_logger
from identity_pool.core.stores.base import Snapshot, WaitPredicate, bounded_timeout, poll_until


@dataclass
class HttpDocumentStore:
    """
    Client for a JSON document service holding the identity document.

    GET  {base_url}/documents/{document}  -> full document
    POST {base_url}/documents/{document}  -> merge the body, return the full document

    The service owns merging; this client never edits the document locally.
    """

    base_url: str
    document: str = "identities"
    api_token: Optional[str] = None
    timeout_seconds: float = 10.0
    poll_interval: float = 2.0
    wait_timeout: Optional[float] = None
    logger: Any = None
    sleep: Callable[[float], None] = time.sleep
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = get_logger()

    def _url(self) -> str:
        return f"{self.base_url.rstrip('/')}/documents/{self.document}"

    def _headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if self.api_token:
            h["Authorization"] = f"Bearer {self.api_token}"
        h.update(self.extra_headers)
        return h

    def pull(
        self,
        wait_until: Optional[WaitPredicate] = None,
        message: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Snapshot:
        if wait_until is None:
            return self._get()
        snap = self._get()
        if wait_until(snap):
            return snap
        if message:
            self.logger.info(message)
        return poll_until(
            self._get,
            wait_until,
            poll_interval=self.poll_interval,
            timeout=bounded_timeout(self.wait_timeout, timeout),
            message=message,
            sleep=self.sleep,
        )

    def push(self, partial: Snapshot) -> Snapshot:
        try:
            r = requests.post(self._url(), json=partial, headers=self._headers(), timeout=self.timeout_seconds)
            r.raise_for_status()
            return self._decode(r)
        except requests.RequestException as e:
            raise StoreError("Identity store push failed.", url=self._url(), error=str(e)) from e

    def _get(self) -> Snapshot:
        try:
            r = requests.get(self._url(), headers=self._headers(), timeout=self.timeout_seconds)
            if r.status_code == 404:
                return {}
            r.raise_for_status()
            return self._decode(r)
        except requests.RequestException as e:
            raise StoreError("Identity store pull failed.", url=self._url(), error=str(e)) from e

    def _decode(self, r: Any) -> Snapshot:
        try:
            data = r.json()
        except ValueError as e:
            raise StoreError("Identity store returned invalid JSON.", url=self._url()) from e
        if not isinstance(data, dict):
            raise StoreError("Identity store returned a non-object document.", url=self._url())
        return data
