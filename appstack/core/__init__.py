"""Provisioning adapter: CDK constructs and AWS lookups driven by a ``ResolvedConfig``."""
