import os

import boto3
from botocore.config import Config

_SECRETS_CLIENT = None


def get_secretsmanager_client():
    global _SECRETS_CLIENT
    if _SECRETS_CLIENT is None:
        config = Config(
            connect_timeout=2,
            read_timeout=3,
            retries={"max_attempts": 2, "mode": "standard"},
        )
        region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
        _SECRETS_CLIENT = boto3.client("secretsmanager", region_name=region, config=config)
    return _SECRETS_CLIENT
