"""Construct providing the application execution roles.

Entities without a permissions override share one role per compute kind
(Lambda functions, service tasks). Every entity with an override gets its own
role holding the merged grants.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from aws_cdk import Stack, aws_iam as iam
from constructs import Construct

from appstack.core.iam import utils as iam_utils
from appstack.resolution.normalizer import LAMBDA, SERVICE, KmsMode
from appstack.resolution.permissions import ResolvedPermissions
from appstack.resolution.resolver import ResolvedConfig, ResolvedEntity

_PRINCIPALS = {
    LAMBDA: "lambda.amazonaws.com",
    SERVICE: "ecs-tasks.amazonaws.com",
}


class ExecutionRolesConstruct(Construct):
    """Provision shared and per-entity execution roles with least-privilege grants."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        env_name: str,
        resolved: ResolvedConfig,
        bucket_name: Optional[str] = None,
        partial_secret_arns: Iterable[str] = (),
    ) -> None:
        super().__init__(scope, construct_id)
        self._resolved = resolved
        self._bucket_name = bucket_name
        self._partial_secret_arns = frozenset(partial_secret_arns)
        self._region = Stack.of(self).region
        self._prefix = f"{resolved.project.name}-{env_name}"

        self._lambda_role: Optional[iam.Role] = None
        self._service_role: Optional[iam.Role] = None
        self._roles: Dict[str, iam.Role] = {}

        shared_lambdas = [resolved.entity(name) for name in resolved.shared_role_entities(LAMBDA)]
        if shared_lambdas:
            self._lambda_role = self._create_role(
                "SharedLambdaRole", LAMBDA, shared_lambdas, role_name=f"{self._prefix}-lambda-role"
            )
            for entity in shared_lambdas:
                self._roles[entity.name] = self._lambda_role

        shared_services = [resolved.entity(name) for name in resolved.shared_role_entities(SERVICE)]
        if shared_services:
            self._service_role = self._create_role(
                "SharedServiceRole", SERVICE, shared_services, role_name=f"{self._prefix}-service-task-role"
            )
            for entity in shared_services:
                self._roles[entity.name] = self._service_role

        for name in resolved.custom_role_entities():
            entity = resolved.entity(name)
            suffix = "LambdaRole" if entity.kind == LAMBDA else "ServiceRole"
            self._roles[name] = self._create_role(iam_utils.construct_id(name, suffix), entity.kind, [entity])

    def _create_role(
        self,
        construct_id: str,
        kind: str,
        entities: Sequence[ResolvedEntity],
        *,
        role_name: Optional[str] = None,
    ) -> iam.Role:
        managed_policies: List[iam.IManagedPolicy] = []
        if kind == LAMBDA:
            managed_policies.append(
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole")
            )
            if any(entity.vpc_attached for entity in entities):
                managed_policies.append(
                    iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaVPCAccessExecutionRole")
                )

        inline_policies = self._inline_policies(entities[0].permissions, entities)
        return iam.Role(
            self,
            construct_id,
            role_name=role_name,
            assumed_by=iam.ServicePrincipal(_PRINCIPALS[kind]),
            managed_policies=managed_policies or None,
            inline_policies=inline_policies or None,
        )

    def _inline_policies(
        self, permissions: ResolvedPermissions, entities: Sequence[ResolvedEntity]
    ) -> Dict[str, iam.PolicyDocument]:
        policies: Dict[str, iam.PolicyDocument] = {}

        if permissions.s3 and self._bucket_name:
            policies["S3Access"] = iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["s3:ListBucket"],
                        resources=[iam_utils.bucket_arn(self._bucket_name)],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=list(iam_utils.BUCKET_OBJECT_ACTIONS),
                        resources=[iam_utils.bucket_objects_arn(self._bucket_name)],
                    ),
                ]
            )

        if permissions.ses:
            policies["SesSendEmail"] = iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=list(iam_utils.SES_ACTIONS),
                        resources=["*"],
                        conditions={"StringEquals": {"aws:RequestedRegion": self._region}},
                    )
                ]
            )

        if permissions.fargate:
            policies["FargateRunTask"] = iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=list(iam_utils.FARGATE_ACTIONS),
                        resources=["*"],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["iam:PassRole"],
                        resources=["*"],
                        conditions={"StringEquals": {"iam:PassedToService": _PRINCIPALS[SERVICE]}},
                    ),
                ]
            )

        secret_arns: List[str] = []
        for entity in entities:
            secret_arns.extend(entity.secret_arns)
        secrets = iam_utils.secret_read_statement(secret_arns, partial=self._partial_secret_arns)
        if secrets is not None:
            policies["SecretsRead"] = iam.PolicyDocument(statements=[secrets])

        key_arns = iam_utils.dedupe(
            entity.kms.key_arn or ""
            for entity in entities
            if entity.kms.mode is KmsMode.CUSTOMER_MANAGED and str(entity.kms.key_arn).startswith("arn:")
        )
        if key_arns:
            policies["KmsDecrypt"] = iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["kms:Decrypt", "kms:GenerateDataKey"],
                        resources=key_arns,
                    )
                ]
            )

        # Global statements come first, then the entity's own.
        if permissions.statements:
            policies["CustomStatements"] = iam.PolicyDocument(
                statements=[iam_utils.policy_statement(spec) for spec in permissions.statements]
            )
        return policies

    @property
    def lambda_role(self) -> Optional[iam.Role]:
        """Return the shared Lambda role, if any Lambda function uses it."""
        return self._lambda_role

    @property
    def service_role(self) -> Optional[iam.Role]:
        """Return the shared service task role, if any service uses it."""
        return self._service_role

    @property
    def roles(self) -> Dict[str, iam.Role]:
        return dict(self._roles)

    def role_for(self, name: str) -> iam.Role:
        """Return the execution role an entity runs under."""
        if name not in self._roles:
            raise KeyError(f"No execution role for entity: {name}")
        return self._roles[name]
