"""Stack configuration contracts, environment presets and file loading."""

from .environments import get_environment_config
from .loader import load_config_file

__all__ = ["get_environment_config", "load_config_file"]
