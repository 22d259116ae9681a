"""Security foundation stack for the application: VPC, execution roles and security groups."""

from typing import Iterable, Optional

from aws_cdk import CfnOutput, Stack, aws_ec2 as ec2
from constructs import Construct

from appstack.core.iam.execution_roles import ExecutionRolesConstruct
from appstack.core.network.security_groups import SecurityGroupsConstruct
from appstack.resolution.resolver import DEFAULT_VPC_CIDR, ResolvedConfig


class SecurityStack(Stack):
    """Central security stack provisioning roles and network boundaries from a resolved configuration."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        resolved: ResolvedConfig,
        bucket_name: Optional[str] = None,
        vpc_cidr: str = DEFAULT_VPC_CIDR,
        partial_secret_arns: Iterable[str] = (),
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.env_name = environment
        self.resolved = resolved

        self.vpc = ec2.Vpc(
            self,
            "Vpc",
            ip_addresses=ec2.IpAddresses.cidr(vpc_cidr),
            max_azs=2,
            nat_gateways=1,
            subnet_configuration=[
                ec2.SubnetConfiguration(name="Public", subnet_type=ec2.SubnetType.PUBLIC, cidr_mask=24),
                ec2.SubnetConfiguration(
                    name="Private", subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS, cidr_mask=24
                ),
            ],
        )

        roles = ExecutionRolesConstruct(
            self,
            "ExecutionRoles",
            env_name=self.env_name,
            resolved=resolved,
            bucket_name=bucket_name,
            partial_secret_arns=partial_secret_arns,
        )
        self.execution_roles = roles

        groups = SecurityGroupsConstruct(
            self,
            "SecurityGroups",
            vpc=self.vpc,
            resolved=resolved,
            vpc_cidr=vpc_cidr,
        )
        self.security_groups = groups

        self._create_outputs()

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs."""
        CfnOutput(self, "VpcId", value=self.vpc.vpc_id, description="Application VPC ID")

        if self.execution_roles.lambda_role is not None:
            CfnOutput(
                self,
                "SharedLambdaRoleArn",
                value=self.execution_roles.lambda_role.role_arn,
                description="Shared Lambda execution role ARN",
            )

        if self.execution_roles.service_role is not None:
            CfnOutput(
                self,
                "SharedServiceRoleArn",
                value=self.execution_roles.service_role.role_arn,
                description="Shared service task role ARN",
            )

        if self.security_groups.lambda_group is not None:
            CfnOutput(
                self,
                "SharedLambdaSecurityGroupId",
                value=self.security_groups.lambda_group.security_group_id,
                description="Security group shared by VPC-attached Lambda functions",
            )
