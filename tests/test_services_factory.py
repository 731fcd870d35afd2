"""Tests for the services container and client caching."""

from __future__ import annotations

from typing import Any

from botocore.config import Config

from contracts.services import ServicesFactory
from services.kv_store import KeyValueStore
from services.object_store import ObjectStore
from tests.aws_mocks import FakeDynamoClient, FakeS3Client


class FakeSession:
    def __init__(self) -> None:
        self.created: list[tuple[str, dict[str, Any]]] = []

    def client(self, service: str, **kwargs: Any) -> Any:
        self.created.append((service, kwargs))
        return FakeS3Client() if service == "s3" else FakeDynamoClient()


def test_factory_builds_adapters_with_cached_clients() -> None:
    session = FakeSession()
    sdk_config = Config(retries={"max_attempts": 3, "mode": "standard"})
    factory = ServicesFactory(session=session, sdk_config=sdk_config, region="eu-west-1")  # type: ignore[arg-type]

    first = factory.build(bucket="reports")
    second = factory.build(bucket="reports")

    assert isinstance(first.objects, ObjectStore)
    assert isinstance(first.kv, KeyValueStore)
    assert first.objects.bucket == "reports"
    assert first.region == "eu-west-1"
    assert [s for s, _ in session.created] == ["s3", "dynamodb"]
    assert session.created[0][1] == {"region_name": "eu-west-1", "config": sdk_config}
    assert second.objects is not first.objects

    factory.clear_cache()
    factory.build(bucket="reports")
    assert len(session.created) == 4
