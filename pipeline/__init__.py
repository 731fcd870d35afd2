"""Pipeline components.

This package contains the delimited row reader, the Parquet writer, the
key-value record encoder, the batch persister and the driver that ties them
together for one ingest invocation.
"""
