"""AWS SDK configuration for the ingest runner.

Client tuning lives here so the service factory and tests share one place:
adaptive SDK retries plus explicit connect/read timeouts, so a remote call
that never answers fails the invocation instead of stalling it.
"""

from botocore.config import Config

from infra.config import get_settings
from version import ENGINE_NAME, ENGINE_VERSION

_AWS_CFG = get_settings().aws

SDK_CONFIG = Config(
    region_name=_AWS_CFG.region,
    retries={"max_attempts": int(_AWS_CFG.max_retries), "mode": "adaptive"},
    user_agent_extra=f"{ENGINE_NAME}/{ENGINE_VERSION}",
    connect_timeout=int(_AWS_CFG.connect_timeout),
    read_timeout=int(_AWS_CFG.timeout),
)

AWS_REGION = _AWS_CFG.region
