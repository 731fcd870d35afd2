"""Project version constants.

These constants are used in logs and embedded in produced Parquet metadata so
that artifacts can be traced back to a specific engine/schema version.
"""

ENGINE_NAME: str = "report-ingest"
ENGINE_VERSION: str = "0.1.0"

SCHEMA_VERSION: int = 1
