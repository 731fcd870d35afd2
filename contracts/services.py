"""
contracts/services.py

Services container + factory (DI-friendly).

Goals:
- The pipeline never constructs boto3 clients itself: it receives an
  ObjectStore and a KeyValueStore.
- Tests inject fakes through the same Services bag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

from services.kv_store import KeyValueStore
from services.object_store import ObjectStore


@dataclass(frozen=True)
class Services:
    """
    Bag of adapters injected into the runner.
    """
    objects: ObjectStore
    kv: KeyValueStore
    region: str = ""


class ServicesFactory:
    """
    Creates and caches AWS SDK clients.

    Usage:
      session = boto3.Session()
      factory = ServicesFactory(session=session, sdk_config=SDK_CONFIG)
      svcs = factory.build(bucket="reports-bucket")
    """

    def __init__(self, *, session: boto3.Session, sdk_config: Config | None = None, region: str = "") -> None:
        self._session = session
        self._sdk_config = sdk_config
        self._region = region
        self._clients: dict[str, Any] = {}

    def _client(self, service: str) -> Any:
        cached = self._clients.get(service)
        if cached is not None:
            return cached
        kwargs: dict[str, Any] = {}
        if self._region:
            kwargs["region_name"] = self._region
        if self._sdk_config is not None:
            kwargs["config"] = self._sdk_config
        client = self._session.client(service, **kwargs)
        self._clients[service] = client
        return client

    def build(self, *, bucket: str, key_field: str = "account_id") -> Services:
        return Services(
            objects=ObjectStore(self._client("s3"), bucket),
            kv=KeyValueStore(self._client("dynamodb"), key_field=key_field),
            region=self._region,
        )

    def clear_cache(self) -> None:
        """
        Drops cached clients. (Mostly useful for tests.)
        """
        self._clients.clear()
