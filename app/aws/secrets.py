"""
AWS Secrets Manager access for database credentials.
"""
import json
import logging
from botocore.exceptions import ClientError

from app.aws.client import get_aws_client

logger = logging.getLogger(__name__)


def get_secret(secret_name: str, region_name: str = "us-east-1") -> dict:
    """
    Fetch a JSON secret and return it parsed.

    Raises:
        ClientError: secret missing or not readable
    """
    client = get_aws_client("secretsmanager", region_name=region_name)
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        logger.error(f"Could not read secret {secret_name}: {e.response['Error']['Code']}")
        raise
    logger.info("Secret %s retrieved", secret_name)
    return json.loads(response["SecretString"])
