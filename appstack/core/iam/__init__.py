"""IAM constructs and helpers for application execution roles."""

from . import utils  # noqa: F401
from .execution_roles import ExecutionRolesConstruct

__all__ = ["utils", "ExecutionRolesConstruct"]
