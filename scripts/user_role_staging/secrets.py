"""Secret resolution for Snowflake credentials.

Passwords and key passphrases may be given literally or as references into a
cloud secret store:

  - "aws-secret://name"            -> AWS Secrets Manager (whole SecretString)
  - "aws-secret://name#field"      -> AWS Secrets Manager (JSON field)
  - "gcp-secret://name"            -> GCP Secret Manager, latest version
  - "gcp-secret://projects/..."    -> GCP Secret Manager, full resource name
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

logger = logging.getLogger("staging.secrets")

_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"


def resolve_secret(value: str) -> str:
    """Return the plaintext behind a secret reference, or the value itself."""
    if value.startswith(_AWS_PREFIX):
        return _resolve_aws_secret(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        return _resolve_gcp_secret(value[len(_GCP_PREFIX):])
    return value


def resolve_env_secret(name: str) -> Optional[str]:
    """Read an environment variable and resolve it. Empty or unset -> None."""
    raw = os.environ.get(name, "")
    if not raw:
        return None
    resolved = resolve_secret(raw)
    if resolved != raw:
        logger.info("Resolved %s from secret store", name)
    return resolved


def _resolve_aws_secret(ref: str) -> str:
    import boto3

    secret_name, _, json_key = ref.partition("#")
    region = os.environ.get("AWS_REGION", "us-east-1")
    client = boto3.client("secretsmanager", region_name=region)

    secret_string = client.get_secret_value(SecretId=secret_name)["SecretString"]
    if json_key:
        return str(json.loads(secret_string)[json_key])
    return secret_string


def _resolve_gcp_secret(ref: str) -> str:
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = os.environ.get("GCP_PROJECT_ID", "") or _gcp_project_from_metadata()
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8")


def _gcp_project_from_metadata() -> str:
    """Fetch the project ID from the GCE/Cloud Run metadata server."""
    import requests

    try:
        resp = requests.get(
            "http://metadata.google.internal/computeMetadata/v1/project/project-id",
            headers={"Metadata-Flavor": "Google"},
            timeout=2,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise RuntimeError(
            "Cannot determine GCP project ID. Set GCP_PROJECT_ID env var."
        ) from exc
    return resp.text
