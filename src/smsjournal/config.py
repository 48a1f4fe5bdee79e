from __future__ import annotations

import os
from pathlib import Path
from typing import Any

ENV_CONFIG_PATH = "SMSJOURNAL_CONFIG"
HOME_CONFIG_PATH = Path.home() / ".smsjournal" / "smsjournal.toml"


class ConfigError(RuntimeError):
    pass


def resolve_config_path(override: Path | None = None) -> Path:
    if override is not None:
        return override.expanduser()
    env_value = os.environ.get(ENV_CONFIG_PATH)
    if env_value and env_value.strip():
        return Path(env_value.strip()).expanduser()
    return HOME_CONFIG_PATH


def _format_toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format_toml_value(item) for item in value) + "]"
    raise ConfigError(f"Unsupported config value {value!r}.")


def dump_toml(config: dict[str, Any]) -> str:
    lines: list[str] = []
    tables: list[tuple[str, dict[str, Any]]] = []
    for key, value in config.items():
        if isinstance(value, dict):
            tables.append((key, value))
            continue
        lines.append(f"{key} = {_format_toml_value(value)}")
    for name, table in tables:
        if lines:
            lines.append("")
        lines.append(f"[{name}]")
        for key, value in table.items():
            if isinstance(value, dict):
                raise ConfigError(f"Nested table `{name}.{key}` is not supported.")
            lines.append(f"{key} = {_format_toml_value(value)}")
    return "\n".join(lines) + "\n"
