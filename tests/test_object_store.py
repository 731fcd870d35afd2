"""Unit tests for the S3 adapter."""

from __future__ import annotations

import json

import pytest

from contracts.errors import IngestError, RemoteCallError
from services.object_store import ObjectStore
from tests.aws_mocks import FakeS3Client, gzip_text


def test_list_keys_paginates_and_filters_prefix() -> None:
    client = FakeS3Client(
        objects={"raw/a.csv.gz": b"", "raw/b.csv.gz": b"", "raw/c.csv.gz": b"", "other/d": b""},
        page_size=2,
    )
    assert ObjectStore(client, "bucket").list_keys("raw/") == ["raw/a.csv.gz", "raw/b.csv.gz", "raw/c.csv.gz"]


def test_open_rows_decompresses_report() -> None:
    client = FakeS3Client(objects={"raw/r.csv.gz": gzip_text("Campaign\tClicks\nBrand\t7\n")})

    rows = list(ObjectStore(client, "bucket").open_rows("raw/r.csv.gz", "\t"))

    assert rows == [{"campaign": "Brand", "clicks": "7"}]


def test_get_json_and_missing_key() -> None:
    client = FakeS3Client(objects={"cfg.json": json.dumps({"report_name": "x"}).encode()})
    store = ObjectStore(client, "bucket")

    assert store.get_json("cfg.json") == {"report_name": "x"}
    with pytest.raises(RemoteCallError) as excinfo:
        store.get_json("missing.json")
    assert "NoSuchKey" in str(excinfo.value)


def test_upload_and_delete(tmp_path) -> None:
    path = tmp_path / "out.parquet"
    path.write_bytes(b"PAR1")
    client = FakeS3Client()
    store = ObjectStore(client, "bucket")

    store.upload_file(str(path), "parquet/out.parquet")
    assert client.objects["parquet/out.parquet"] == b"PAR1"

    store.delete("parquet/out.parquet")
    assert client.deleted == ["parquet/out.parquet"]
    assert "parquet/out.parquet" not in client.objects


def test_upload_error_is_wrapped(tmp_path) -> None:
    path = tmp_path / "out.parquet"
    path.write_bytes(b"x")
    store = ObjectStore(FakeS3Client(raise_on="put_object"), "bucket")

    with pytest.raises(RemoteCallError):
        store.upload_file(str(path), "k")


def test_bucket_is_required() -> None:
    with pytest.raises(ValueError):
        ObjectStore(FakeS3Client(), "")


class _TrackingS3Client(FakeS3Client):
    """Keeps every response body so tests can check it was closed."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.bodies: list = []

    def get_object(self, *, Bucket: str, Key: str):
        response = super().get_object(Bucket=Bucket, Key=Key)
        self.bodies.append(response["Body"])
        return response


def test_open_rows_closes_body_once_exhausted() -> None:
    client = _TrackingS3Client(objects={"raw/r.csv.gz": gzip_text("id,clicks\na,1\n")})

    rows = list(ObjectStore(client, "bucket").open_rows("raw/r.csv.gz", ","))

    assert rows == [{"id": "a", "clicks": "1"}]
    assert [body.closed for body in client.bodies] == [True]


def test_get_json_rejects_malformed_document() -> None:
    client = _TrackingS3Client(objects={"cfg.json": b"{not json"})

    with pytest.raises(IngestError) as excinfo:
        ObjectStore(client, "bucket").get_json("cfg.json")

    assert not isinstance(excinfo.value, ValueError)
    assert "s3://bucket/cfg.json" in str(excinfo.value)
    assert client.bodies[0].closed
