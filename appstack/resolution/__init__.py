"""Configuration resolution engine.

Turns an operator-authored stack configuration into a validated,
fully-merged ``ResolvedConfig`` ready for provisioning.
"""

from .errors import ConfigurationError, Issue, IssueRules, SecretReferenceError
from .resolver import ProvisioningContext, ResolvedConfig, ResolvedEntity, resolve

__all__ = [
    "ConfigurationError",
    "Issue",
    "IssueRules",
    "ProvisioningContext",
    "ResolvedConfig",
    "ResolvedEntity",
    "SecretReferenceError",
    "resolve",
]
