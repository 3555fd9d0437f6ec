"""
Slack bot token retrieval from AWS Secrets Manager
"""

import json
import logging
from typing import Any, Optional

import boto3

logger = logging.getLogger(__name__)

TOKEN_KEYS = ("token", "slack_token", "SLACK_TOKEN")
PLACEHOLDER_TOKEN = "DUMMY"


def parse_secret_string(secret: str) -> str:
    """
    Plain text is the token. A JSON object is searched for TOKEN_KEYS in
    order; when none holds a non-empty string the whole secret is used.
    """
    if not secret.startswith("{"):
        logger.info("Using plain text secret as token")
        return secret

    try:
        data = json.loads(secret)
    except json.JSONDecodeError:
        logger.info("Secret is not in JSON format, using as plain token")
        return secret

    if isinstance(data, dict):
        for key in TOKEN_KEYS:
            value = data.get(key)
            if isinstance(value, str) and value:
                return value

    logger.info("Token not found in secret JSON, using entire secret as token")
    return secret


def resolve_slack_token(secret_name: Optional[str], client: Any = None) -> Optional[str]:
    """
    Fetch the bot token once at startup.

    Returns None when no secret is configured, the lookup fails, or the
    value is empty or the DUMMY placeholder. Notification then fails per
    message instead of at startup.
    """
    if not secret_name:
        logger.warning("SLACK_BOT_TOKEN_SECRET_NAME environment variable is not set")
        return None

    logger.info(f"Attempting to get secret: {secret_name}")
    secrets = client or boto3.client("secretsmanager")
    try:
        result = secrets.get_secret_value(SecretId=secret_name)
    except Exception as e:
        logger.error(f"Failed to get secret value: {e}")
        return None

    secret = result.get("SecretString")
    if secret is None:
        logger.warning("Secret value is nil")
        return None

    logger.info(f"Retrieved secret string (length: {len(secret)})")
    token = parse_secret_string(secret)
    if not token or token == PLACEHOLDER_TOKEN:
        logger.warning("Retrieved token is empty or DUMMY value")
        return None

    logger.info(f"Successfully retrieved Slack token (length: {len(token)})")
    return token
