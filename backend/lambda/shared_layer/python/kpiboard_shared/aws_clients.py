"""kpiboard_shared.aws_clients — Lazy-singleton AWS service clients.

Only Secrets Manager is needed: the Notion integration token may be stored
there instead of in the function environment.
"""

from __future__ import annotations

import os
from typing import Optional

import boto3
from botocore.config import Config

SECRETS_REGION: str = os.environ.get("SECRETS_REGION", os.environ.get("AWS_REGION", "us-west-2"))

_secretsmanager = None


def _get_secretsmanager(region: Optional[str] = None):
    """Get (or create) the Secrets Manager client singleton."""
    global _secretsmanager
    if _secretsmanager is None:
        _secretsmanager = boto3.client(
            "secretsmanager",
            region_name=region or SECRETS_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _secretsmanager
