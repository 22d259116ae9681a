"""Load a stack configuration from a JSON file.

A file may carry a whole configuration tree, or name an ``extends`` preset
(``dev``, ``staging`` or ``prod``) and override parts of it. Overrides are
merged one level deep per top-level block so a file can replace a single
service without restating the rest.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from appstack.config.environments import get_environment_config
from appstack.config.types import StackConfig

_BLOCKS = ("project", "defaults", "services", "lambdas")


def merge_stack_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with each top-level block updated key by key from ``override``."""
    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        if key in _BLOCKS and isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            block = dict(merged[key])
            block.update(copy.deepcopy(dict(value)))
            merged[key] = block
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config_file(path: Union[str, Path]) -> StackConfig:
    """Read a configuration file, applying its ``extends`` preset when present."""
    file_path = Path(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {file_path}: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"{file_path} must contain a JSON object")

    preset = raw.pop("extends", None)
    if preset is None:
        return raw  # type: ignore[return-value]
    return merge_stack_config(get_environment_config(str(preset)), raw)  # type: ignore[return-value]
