"""Network constructs for application workloads."""

from .security_groups import SecurityGroupsConstruct

__all__ = ["SecurityGroupsConstruct"]
