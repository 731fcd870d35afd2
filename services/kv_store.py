"""DynamoDB adapter used by the ingest pipeline.

Only the three operations the pipeline needs are exposed. Transport failures
(``ClientError`` / ``BotoCoreError``) are re-raised as
:class:`contracts.errors.RemoteCallError`; nothing is retried here beyond the
SDK's own retry configuration.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from services._common import remote_call_error

logger = logging.getLogger(__name__)

ACCOUNTS_KEY_FIELD = "account_id"


def _s(item: Dict[str, Any], name: str) -> str:
    attr = item.get(name)
    if isinstance(attr, dict):
        return str(attr.get("S") or "")
    return ""


class KeyValueStore:
    """Thin wrapper over a boto3 ``dynamodb`` client."""

    def __init__(self, client: Any, *, key_field: str = ACCOUNTS_KEY_FIELD) -> None:
        self._client = client
        self._key_field = key_field

    def batch_write(self, table: str, requests: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Issue one BatchWriteItem request; return the unprocessed requests for ``table``."""
        try:
            resp = self._client.batch_write_item(RequestItems={table: list(requests)})
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("batch_write_item", exc) from exc
        unprocessed = (resp.get("UnprocessedItems") or {}).get(table) or []
        return list(unprocessed)

    def scan_all(self, table: str) -> List[Dict[str, Any]]:
        """Scan a whole table following ``LastEvaluatedKey``."""
        items: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {"TableName": table}
        while True:
            try:
                resp = self._client.scan(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise remote_call_error("scan", exc) from exc
            items.extend(resp.get("Items") or [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def get_all_accounts(self, table: str) -> Dict[str, List[int]]:
        """
        Split the accounts table into ``{"af": [...], "not_af": [...]}`` by the
        ``is_af`` attribute (stored as the text ``"true"``/``"false"``).
        """
        af: List[int] = []
        not_af: List[int] = []
        for item in self.scan_all(table):
            account_id = _s(item, ACCOUNTS_KEY_FIELD)
            if not account_id:
                continue
            try:
                parsed = int(account_id.replace("-", ""))
            except ValueError:
                logger.warning("skipping account with non-numeric id: %r", account_id)
                continue
            if _s(item, "is_af") == "true":
                af.append(parsed)
            else:
                not_af.append(parsed)
        logger.info("accounts loaded from %s: af=%s not_af=%s", table, len(af), len(not_af))
        return {"af": af, "not_af": not_af}

    def get_website(self, table: str, account_id: str) -> str:
        """Return the ``website`` attribute of one account ("" if absent)."""
        try:
            resp = self._client.get_item(
                TableName=table,
                Key={self._key_field: {"S": str(account_id)}},
            )
        except (ClientError, BotoCoreError) as exc:
            raise remote_call_error("get_item", exc) from exc
        item = resp.get("Item")
        if not item:
            raise LookupError(f"account {account_id!r} not found in {table}")
        return _s(item, "website")
