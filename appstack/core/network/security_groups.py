"""Construct providing security groups rendered from a resolved network plan."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

from appstack.core.iam import utils as iam_utils
from appstack.resolution.network import NetworkRule
from appstack.resolution.resolver import ResolvedConfig


def peer_for(cidr: str) -> ec2.IPeer:
    return ec2.Peer.ipv6(cidr) if ":" in cidr else ec2.Peer.ipv4(cidr)


def ports_for(rule: NetworkRule, port_mode: str = "range") -> List[ec2.Port]:
    """CDK ports for one rule; ``port_mode`` decides how multi-port rules are opened."""
    if rule.protocol == "-1":
        return [ec2.Port.all_traffic()]
    if rule.protocol == "icmp":
        return [ec2.Port.all_icmp()]

    ports: List[ec2.Port] = []
    for start, end in rule.port_ranges(port_mode):
        if rule.protocol == "udp":
            ports.append(ec2.Port.udp(start) if start == end else ec2.Port.udp_range(start, end))
        else:
            ports.append(ec2.Port.tcp(start) if start == end else ec2.Port.tcp_range(start, end))
    return ports


def describe_rule(rule: NetworkRule) -> str:
    ports = ",".join(str(port) for port in rule.ports) or "all"
    protocol = "all" if rule.protocol == "-1" else rule.protocol
    return f"{protocol} {ports}"


class SecurityGroupsConstruct(Construct):
    """Provision the shared Lambda security group and one group per service."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        vpc: ec2.IVpc,
        resolved: ResolvedConfig,
        vpc_cidr: Optional[str] = None,
    ) -> None:
        super().__init__(scope, construct_id)
        self._vpc = vpc
        self._port_mode = resolved.network.port_mode
        self._lambda_group: Optional[ec2.SecurityGroup] = None
        self._service_groups: Dict[str, ec2.SecurityGroup] = {}

        if resolved.network.shared_lambda_members:
            self._lambda_group = self._create_group(
                "SharedLambdaSecurityGroup",
                description=f"{resolved.project.name} Lambda functions in the VPC",
                rules=resolved.network.shared_lambda_rules,
            )

        for name, entity in resolved.services.items():
            group = self._create_group(
                iam_utils.construct_id(name, "SecurityGroup"),
                description=f"{resolved.project.name} service {name}",
                rules=entity.network.egress,
            )
            if entity.port is not None and vpc_cidr:
                group.add_ingress_rule(peer_for(vpc_cidr), ec2.Port.tcp(entity.port), f"{name} traffic from VPC")
            self._service_groups[name] = group

    def _create_group(self, group_id: str, *, description: str, rules: Iterable[NetworkRule]) -> ec2.SecurityGroup:
        group = ec2.SecurityGroup(
            self,
            group_id,
            vpc=self._vpc,
            description=description,
            allow_all_outbound=False,
        )
        for rule in rules:
            for cidr in rule.cidrs:
                for port in ports_for(rule, self._port_mode):
                    group.add_egress_rule(peer_for(cidr), port, describe_rule(rule))
        return group

    @property
    def lambda_group(self) -> Optional[ec2.SecurityGroup]:
        """Return the security group shared by VPC-attached Lambda functions."""
        return self._lambda_group

    @property
    def service_groups(self) -> Dict[str, ec2.SecurityGroup]:
        return dict(self._service_groups)
