from appstack.config.types import StackConfig

from .dev import dev_config
from .prod import prod_config
from .staging import staging_config

PRESETS = ("dev", "staging", "prod")


def get_environment_config(environment: str) -> StackConfig:
    """Return the preset stack configuration for an environment name."""
    configs = {
        "dev": dev_config,
        "staging": staging_config,
        "prod": prod_config,
    }

    if environment not in configs:
        raise ValueError(f"Unknown environment: {environment} (expected one of {', '.join(PRESETS)})")

    return configs[environment]  # type: ignore[return-value]
