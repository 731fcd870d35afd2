"""S3 adapter: raw report listing/reading and artifact upload.

Raw reports are gzip-compressed delimited text. Decompression happens here so
the pipeline only ever sees an iterator of rows.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterator, List

from botocore.exceptions import BotoCoreError, ClientError

from contracts.errors import IngestError
from pipeline.row_reader import Row, open_gzip_rows
from services._common import remote_call_error

logger = logging.getLogger(__name__)


class ObjectStore:
    """Thin wrapper over a boto3 ``s3`` client bound to one bucket."""

    def __init__(self, client: Any, bucket: str) -> None:
        if not bucket:
            raise ValueError("bucket must be a non-empty string")
        self._client = client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def list_keys(self, prefix: str = "") -> List[str]:
        """All object keys under ``prefix`` (paginated)."""
        keys: List[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents") or []:
                    key = obj.get("Key")
                    if key:
                        keys.append(str(key))
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("list_objects_v2", exc) from exc
        return keys

    def _get_body(self, key: str) -> Any:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("get_object", exc) from exc
        return resp["Body"]

    def open_rows(self, key: str, delimiter: str = ",", *, normalize_headers: bool = True) -> Iterator[Row]:
        """
        Stream rows from a gzip-compressed delimited report.

        The object body is fetched eagerly (so a missing key fails here) and closed
        once the rows are exhausted or the iterator is closed.
        """
        start = time.monotonic()
        body = self._get_body(key)
        logger.info("opened s3://%s/%s in %.3fs", self._bucket, key, time.monotonic() - start)
        return self._closing_rows(body, delimiter, normalize_headers)

    @staticmethod
    def _closing_rows(body: Any, delimiter: str, normalize_headers: bool) -> Iterator[Row]:
        try:
            yield from open_gzip_rows(body, delimiter, normalize_headers=normalize_headers)
        finally:
            body.close()

    def get_json(self, key: str) -> Any:
        """Fetch and parse a JSON document. A malformed document raises IngestError."""
        body = self._get_body(key)
        try:
            raw = body.read()
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("get_object", exc) from exc
        finally:
            body.close()
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise IngestError(f"s3://{self._bucket}/{key} is not valid JSON: {exc}") from exc

    def upload_file(self, path: str, key: str) -> None:
        try:
            with open(path, "rb") as fh:
                self._client.put_object(Bucket=self._bucket, Key=key, Body=fh)
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("put_object", exc) from exc
        logger.info("uploaded %s to s3://%s/%s", path, self._bucket, key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("delete_object", exc) from exc
