"""
runner.py

Report ingest runner (delimited report -> typed Parquet -> DynamoDB records).

Pipeline:
  raw report (local file or S3, gzip or plain)
    -> rows -> column batches -> Parquet artifact (local, optionally uploaded)
      -> report rows -> DynamoDB BatchWriteItem (optional, --persist)

The schema comes either from a Parquet message-type file (--schema) or from a
report configuration JSON document (--report-config), which also carries the
table name, key field and delimiter.

Local file:
python runner.py --input data/campaigns.csv.gz --schema schemas/campaigns.txt --out /tmp/campaigns.parquet

Every report under an S3 prefix, persisted to DynamoDB:
python runner.py --s3-prefix raw/campaigns/ --report-config configs/campaigns.json --persist
"""

from __future__ import annotations

import argparse
import gzip
import os
import posixpath
import sys
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from datetime import datetime, timezone
from typing import IO, Iterable, List, Mapping, Optional, Sequence

import boto3

from contracts.errors import IngestError
from contracts.report_types import ReportConfig, parse_report_config
from contracts.schema import TableSchema, parse_message_type
from contracts.services import Services, ServicesFactory
from infra.config import Settings, get_settings
from infra.logging_config import StructuredLogger, set_invocation_context, setup_logging
from pipeline.batch_persister import BatchPersister, RetryPolicy
from pipeline.ingest import IngestStats, ingest_rows
from pipeline.row_reader import read_rows
from pipeline.writer_parquet import ColumnarWriter
from version import ENGINE_NAME, ENGINE_VERSION, SCHEMA_VERSION

log = StructuredLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _make_run_id(run_ts: datetime) -> str:
    return f"run-{run_ts.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report ingest runner (report -> parquet + dynamodb)")

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--input", default="", help="Local report file (.gz is decompressed)")
    source.add_argument("--s3-prefix", default="", help="Ingest every report under this S3 prefix")

    parser.add_argument("--schema", default="", help="File holding a Parquet message-type schema")
    parser.add_argument("--report-config", default="", help="Report configuration JSON (local path)")
    parser.add_argument("--out", default="", help="Parquet output path (local --input only)")
    parser.add_argument("--delimiter", default=None, help="Field delimiter (default from settings)")
    parser.add_argument(
        "--normalize-headers",
        action="store_true",
        help="Snake-case report headers before matching schema columns",
    )
    parser.add_argument("--persist", action="store_true", help="Also write rows to DynamoDB")
    parser.add_argument("--table", default="", help="DynamoDB table (overrides config/settings)")
    parser.add_argument("--key-field", default="", help="Primary key attribute (overrides config/settings)")
    parser.add_argument("--upload", action="store_true", help="Upload Parquet artifacts to S3")
    parser.add_argument("--print-version", action="store_true", help="Print versions and exit")
    return parser.parse_args(list(argv))


def _resolve_schema(args: argparse.Namespace, report_cfg: Optional[ReportConfig]) -> TableSchema:
    if args.schema:
        with open(args.schema, encoding="utf-8") as fh:
            return parse_message_type(fh.read())
    if report_cfg is not None:
        return report_cfg.table_schema()
    raise SystemExit("Missing --schema or --report-config.")


def _open_local(path: str) -> IO[bytes]:
    if path.endswith(".gz"):
        return gzip.open(path, "rb")
    return open(path, "rb")


def _make_persister(settings: Settings, stack: ExitStack, services: Services) -> BatchPersister:
    store_cfg = settings.store
    executor = None
    if store_cfg.flush_workers > 0:
        executor = stack.enter_context(ThreadPoolExecutor(max_workers=store_cfg.flush_workers))
    return BatchPersister(
        services.kv,
        capacity=store_cfg.batch_capacity,
        retry=RetryPolicy(
            max_attempts=store_cfg.retry_max_attempts,
            base_delay_seconds=store_cfg.retry_base_delay,
            max_delay_seconds=store_cfg.retry_max_delay,
        ),
        executor=executor,
    )


def _parquet_name(key: str) -> str:
    base = posixpath.basename(key)
    for suffix in (".gz", ".csv", ".tsv", ".txt"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
    return f"{base}.parquet"


def run_report(
    *,
    rows: Iterable[Mapping[str, Optional[str]]],
    schema: TableSchema,
    out_path: str,
    persister: Optional[BatchPersister] = None,
    table: str = "",
    key_field: str = "",
    drain_timeout: Optional[float] = None,
) -> IngestStats:
    """Ingest one report: write ``out_path`` and optionally persist rows."""
    writer = ColumnarWriter.open(schema, out_path)
    return ingest_rows(
        rows,
        schema,
        writer,
        persister=persister,
        table=table or None,
        key_field=key_field or None,
        drain_timeout=drain_timeout,
    )


def _print_summary(key: str, out_path: str, stats: IngestStats) -> None:
    print(f"--- {key} ---")
    print(f"parquet: {out_path}")
    print(f"rows_read: {stats.rows_read}")
    print(f"rows_written: {stats.rows_written}")
    if stats.persist is not None:
        print(f"records_submitted: {stats.records_submitted}")
        print(f"records_rejected: {stats.records_rejected}")
        print(f"records_written: {stats.persist.written}")
        print(f"batch_flushes: {stats.persist.flushes}")
        print(f"items_retried: {stats.persist.retried_items}")
    for sample in stats.rejected_samples[:10]:
        print(f"- {sample}")


def main(argv: Sequence[str]) -> int:
    args = _parse_args(argv)

    if args.print_version:
        print(f"ENGINE_NAME={ENGINE_NAME}")
        print(f"ENGINE_VERSION={ENGINE_VERSION}")
        print(f"SCHEMA_VERSION={SCHEMA_VERSION}")
        return 0

    setup_logging()
    settings = get_settings()

    report_cfg: Optional[ReportConfig] = None
    if args.report_config:
        with open(args.report_config, "rb") as fh:
            report_cfg = parse_report_config(fh)

    schema = _resolve_schema(args, report_cfg)
    delimiter = args.delimiter or (report_cfg.delimiter if report_cfg else settings.ingest.delimiter)
    table = args.table or (report_cfg.table_name if report_cfg else "") or settings.store.reports_table
    key_field = args.key_field or (report_cfg.key_field if report_cfg else "") or settings.store.key_field

    if not args.input and not args.s3_prefix:
        raise SystemExit("Missing --input or --s3-prefix.")
    if args.persist and not table:
        raise SystemExit("Missing --table (or REPORTS_TABLE env var) for --persist.")

    run_id = _make_run_id(_utc_now())
    set_invocation_context(run_id=run_id, schema=schema.name)

    needs_aws = bool(args.s3_prefix or args.persist or args.upload)
    services: Optional[Services] = None
    if needs_aws:
        if not settings.ingest.bucket:
            raise SystemExit("Missing INGEST_BUCKET for S3/DynamoDB access.")
        from infra.aws_config import SDK_CONFIG

        factory = ServicesFactory(session=boto3.Session(), sdk_config=SDK_CONFIG, region=settings.aws.region)
        services = factory.build(bucket=settings.ingest.bucket)

    jobs: List[tuple[str, str]] = []
    if args.input:
        jobs.append((args.input, args.out or os.path.join(settings.ingest.tmp_dir, _parquet_name(args.input))))
    else:
        assert services is not None
        for key in services.objects.list_keys(args.s3_prefix):
            jobs.append((key, os.path.join(settings.ingest.tmp_dir, run_id, _parquet_name(key))))
        log.info("reports_listed", prefix=args.s3_prefix, count=len(jobs))

    failures = 0
    for source_key, out_path in jobs:
        set_invocation_context(source=source_key)
        # one persister per report: a failed report leaves nothing behind for the next one
        with ExitStack() as stack:
            persister = _make_persister(settings, stack, services) if args.persist and services else None
            try:
                if args.input:
                    with _open_local(source_key) as fh:
                        rows = read_rows(fh, delimiter, normalize_headers=args.normalize_headers)
                        stats = run_report(
                            rows=rows,
                            schema=schema,
                            out_path=out_path,
                            persister=persister,
                            table=table,
                            key_field=key_field,
                            drain_timeout=settings.store.flush_timeout_seconds,
                        )
                else:
                    rows = services.objects.open_rows(
                        source_key, delimiter, normalize_headers=args.normalize_headers
                    )
                    stats = run_report(
                        rows=rows,
                        schema=schema,
                        out_path=out_path,
                        persister=persister,
                        table=table,
                        key_field=key_field,
                        drain_timeout=settings.store.flush_timeout_seconds,
                    )
                if args.upload and services is not None:
                    prefix = (report_cfg.parquet_prefix if report_cfg else "") or settings.ingest.parquet_prefix
                    services.objects.upload_file(out_path, posixpath.join(prefix, posixpath.basename(out_path)))
            except IngestError as exc:
                failures += 1
                log.error("report_failed", error=str(exc), error_type=type(exc).__name__)
                continue

            _print_summary(source_key, out_path, stats)

    print(f"reports: {len(jobs)}")
    print(f"failed: {failures}")
    return 2 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
