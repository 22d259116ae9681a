"""Secret name to ARN lookup for ``ProvisioningContext``.

The lookup is either read from Secrets Manager with boto3 or, when the
account cannot be queried at synth time, built as partial ARNs from the
secret names a configuration references.
"""

from __future__ import annotations

from itertools import chain
from typing import Any, Dict, Iterable, List, Mapping, Optional

import boto3
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from appstack.resolution.environment import canonical_database, default_database_secret, split_secret_reference
from appstack.resolution.models import parse_stack_config
from appstack.resolution.normalizer import normalize
from appstack.utils.logger import get_logger


def fetch_secret_arns(
    client: Optional[BaseClient] = None,
    *,
    prefix: Optional[str] = None,
    log: Optional[Any] = None,
) -> Dict[str, str]:
    """Return ``{secret name: ARN}`` for every secret visible to the caller."""
    client = client or boto3.client("secretsmanager")
    logger = log or get_logger(__name__)
    paginator = client.get_paginator("list_secrets")
    params: Dict[str, Any] = {}
    if prefix:
        params["Filters"] = [{"Key": "name", "Values": [prefix]}]

    arns: Dict[str, str] = {}
    try:
        for page in paginator.paginate(**params):
            for secret in page.get("SecretList", []):
                name = secret.get("Name")
                arn = secret.get("ARN")
                if name and arn:
                    arns[name] = arn
    except ClientError:
        logger.exception("Failed to list secrets", extra={"prefix": prefix})
        raise

    logger.info("Loaded secret lookup", extra={"secret_count": len(arns), "prefix": prefix})
    return arns


def referenced_secret_names(raw: Mapping[str, Any]) -> List[str]:
    """Secret identifiers referenced by name (not by ARN) anywhere in a configuration."""
    parsed, _ = parse_stack_config(raw)
    if parsed is None:
        return []
    services, lambdas = normalize(parsed.defaults, parsed.services, parsed.lambdas)
    default_secret = default_database_secret(parsed.project)

    references: List[str] = []
    for entity in chain(services.values(), lambdas.values()):
        references.extend(entity.secrets.values())
        binding = canonical_database(entity.database, default_secret=default_secret)
        if binding is not None:
            references.append(binding.secret)

    names = set()
    for reference in references:
        identifier, _, is_arn = split_secret_reference(reference)
        if not is_arn:
            names.add(identifier)
    return sorted(names)


def partial_secret_arns(
    names: Iterable[str],
    *,
    region: str,
    account: str,
    partition: str = "aws",
) -> Dict[str, str]:
    """Build suffix-less secret ARNs; IAM grants must add the ``-??????`` wildcard."""
    return {name: f"arn:{partition}:secretsmanager:{region}:{account}:secret:{name}" for name in names}
