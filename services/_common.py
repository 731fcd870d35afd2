"""Shared helpers for the boto3 adapters."""

from __future__ import annotations

from botocore.exceptions import ClientError

from contracts.errors import RemoteCallError


def remote_call_error(operation: str, exc: Exception) -> RemoteCallError:
    """Build a RemoteCallError from a botocore exception (code + message when available)."""
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        return RemoteCallError(operation, f"{err.get('Code', 'ClientError')}: {err.get('Message', '')}")
    return RemoteCallError(operation, str(exc))
