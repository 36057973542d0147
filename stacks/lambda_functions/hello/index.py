"""Hello resolver Lambda.

Backs the ``Query.hello`` field of the AppSync API.

Environment variables (set by CDK):
  STAGE             - deployment stage label ("beta" or "prod")
  USERS_TABLE_NAME  - DynamoDB users table for this stage
"""
import json
import logging
import os
from datetime import datetime, timezone

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def lambda_handler(event, _context):
    """Return a greeting tagged with the stage it was served from."""
    logger.info("Event: %s", json.dumps(event, default=str))
    return {
        "message": "Hello from Lambda!",
        "stage": os.environ.get("STAGE", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
