"""Reusable IAM helper utilities for execution role constructs."""

from __future__ import annotations

import re
from typing import Collection, Iterable, Optional, Sequence

from aws_cdk import aws_iam as iam

from appstack.resolution.models import StatementSpec

SES_ACTIONS = ("ses:SendEmail", "ses:SendRawEmail")
FARGATE_ACTIONS = ("ecs:RunTask", "ecs:DescribeTasks", "ecs:StopTask")
SECRET_ACTIONS = ("secretsmanager:GetSecretValue",)
BUCKET_OBJECT_ACTIONS = ("s3:GetObject", "s3:PutObject", "s3:DeleteObject")

_ID_PART = re.compile(r"[^A-Za-z0-9]+")


def dedupe(values: Iterable[str]) -> list[str]:
    """Return items without duplicates while preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def bucket_arn(bucket_name: str) -> str:
    """Return the ARN for an S3 bucket."""
    bucket = str(bucket_name or "").strip()
    if not bucket:
        raise ValueError("Bucket name must be provided")
    return f"arn:aws:s3:::{bucket}"


def bucket_objects_arn(bucket_name: str, prefix: Optional[str] = None) -> str:
    """Return an object-level ARN for an S3 bucket with an optional prefix."""
    base_arn = bucket_arn(bucket_name)
    if prefix is None or not str(prefix).strip():
        return f"{base_arn}/*"
    normalized = str(prefix).strip().lstrip("/")
    if normalized.endswith("*"):
        return f"{base_arn}/{normalized}"
    return f"{base_arn}/{normalized.rstrip('/')}/*"


def construct_id(name: str, suffix: str = "") -> str:
    """PascalCase construct id from an entity name such as ``image-worker``."""
    parts = [part for part in _ID_PART.split(name) if part]
    return "".join(part[:1].upper() + part[1:] for part in parts) + suffix


def policy_statement(spec: StatementSpec) -> iam.PolicyStatement:
    """Render a configured custom statement as a CDK policy statement."""
    return iam.PolicyStatement(
        effect=iam.Effect.DENY if spec.effect == "Deny" else iam.Effect.ALLOW,
        actions=list(spec.actions),
        resources=list(spec.resources),
        conditions=dict(spec.conditions) if spec.conditions else None,
    )


def secret_read_statement(
    secret_arns: Sequence[str], *, partial: Collection[str] = ()
) -> Optional[iam.PolicyStatement]:
    """Read access to the given secrets, or ``None`` when there are none.

    Secrets Manager appends a random six-character suffix to secret ARNs, so
    the ARNs listed in ``partial`` (built from names alone) get a ``-??????``
    wildcard. Full ARNs already carry the suffix and are granted as written.
    """
    resources = [f"{arn}-??????" if arn in partial else arn for arn in dedupe(secret_arns)]
    if not resources:
        return None
    return iam.PolicyStatement(effect=iam.Effect.ALLOW, actions=list(SECRET_ACTIONS), resources=resources)
