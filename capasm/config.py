"""
Backend Configuration

Resolved options for one translation unit, plus the per-pass config table
the pipeline reads. Both can come from a JSON file of the form:

    {
        "backend": {"offset_heap_refs": true},
        "passes": {"shift-ops": {"enabled": true, "options": {}}}
    }
"""

import json
from dataclasses import dataclass, field, fields
from typing import Any


@dataclass
class PassConfig:
    """Configuration for a single pass."""
    name: str
    enabled: bool = True
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class BackendConfig:
    """Target options.

    offset_heap_refs: heap references (loadv/loadvmc/storev) are 64-bit
        offsets instead of 128-bit capabilities.
    annotate: emit instruction annotations as comments.
    """
    offset_heap_refs: bool = False
    annotate: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BackendConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown backend options: {', '.join(sorted(unknown))}")
        return cls(**{k: bool(v) for k, v in data.items()})


def parse_pass_configs(data: dict[str, Any]) -> dict[str, PassConfig]:
    configs: dict[str, PassConfig] = {}
    for pass_name, opts in data.get("passes", {}).items():
        configs[pass_name] = PassConfig(
            name=pass_name,
            enabled=opts.get("enabled", True),
            options=opts.get("options", {}),
        )
    return configs


def load_config(config_path: str) -> tuple[BackendConfig, dict[str, PassConfig]]:
    """Load backend options and pass configs from a JSON file."""
    with open(config_path) as f:
        data = json.load(f)
    return BackendConfig.from_dict(data.get("backend", {})), parse_pass_configs(data)
