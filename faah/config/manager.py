from __future__ import annotations

import copy
import logging
import os
import tomllib
from pathlib import Path

from faah.config.defaults import DEFAULT_CONFIG
from faah.config.settings import Settings

log = logging.getLogger(__name__)


class ConfigManager:
    def __init__(self, config_path: str | None = None) -> None:
        if config_path is not None:
            self._config_path = Path(config_path).expanduser()
        else:
            xdg = os.environ.get("XDG_CONFIG_HOME", "~/.config")
            self._config_path = Path(xdg).expanduser() / "faah" / "config.toml"
        self._config: dict = {}
        self._mtime_ns: int | None = None

    @property
    def path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> dict:
        if not self._config:
            self._config = self.load()
        return self._config

    def load(self) -> dict:
        defaults = copy.deepcopy(DEFAULT_CONFIG)
        if not self._config_path.exists():
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self.save(defaults)
            self._config = defaults
            return defaults

        try:
            with open(self._config_path, "rb") as f:
                user_config = tomllib.load(f)
        except tomllib.TOMLDecodeError:
            log.warning("Could not parse %s, using defaults", self._config_path, exc_info=True)
            user_config = {}
        self._mtime_ns = self._stat_mtime()

        merged = self._deep_merge(defaults, user_config)
        self._config = merged
        return merged

    def refresh(self) -> dict:
        """Reload the file if it changed on disk since the last load."""
        if not self._config:
            return self.config
        mtime = self._stat_mtime()
        if mtime is not None and mtime != self._mtime_ns:
            log.debug("Config file %s changed, reloading", self._config_path)
            return self.load()
        return self._config

    def settings(self) -> Settings:
        """Fresh settings snapshot; picks up edits made while running."""
        return Settings.from_config(self.refresh())

    def _stat_mtime(self) -> int | None:
        try:
            return self._config_path.stat().st_mtime_ns
        except OSError:
            return None

    def _deep_merge(self, base: dict, override: dict) -> dict:
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def save(self, config: dict) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        toml_str = self._dict_to_toml(config)
        with open(self._config_path, "w") as f:
            f.write(toml_str)
        self._mtime_ns = self._stat_mtime()

    def get(self, key_path: str, default: object = None) -> object:
        keys = key_path.split(".")
        current: object = self.refresh()
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    def set(self, key_path: str, value: object) -> None:
        """Set a dotted key and write the whole config back to disk."""
        keys = key_path.split(".")
        current = self.refresh()
        for key in keys[:-1]:
            nxt = current.get(key)
            if not isinstance(nxt, dict):
                nxt = {}
                current[key] = nxt
            current = nxt
        current[keys[-1]] = value
        self.save(self._config)

    # ------------------------------------------------------------------
    # Minimal TOML serializer (tomllib only reads)
    # ------------------------------------------------------------------

    def _dict_to_toml(self, d: dict, prefix: str = "") -> str:
        lines: list[str] = []
        tables: list[tuple[str, str, dict]] = []

        for key, value in d.items():
            full_key = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict):
                tables.append((key, full_key, value))
            else:
                lines.append(f"{key} = {self._toml_value(value)}")

        result = "\n".join(lines)
        for _key, full_key, table in tables:
            section = self._dict_to_toml(table, prefix=full_key)
            header = f"\n[{full_key}]\n"
            result += header + section

        return result.lstrip("\n") + ("\n" if not prefix else "")

    @staticmethod
    def _toml_value(value: object) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            escaped = (
                value.replace("\\", "\\\\")
                .replace('"', '\\"')
                .replace("\n", "\\n")
                .replace("\t", "\\t")
            )
            return f'"{escaped}"'
        if isinstance(value, list):
            items = ", ".join(ConfigManager._toml_value(item) for item in value)
            return f"[{items}]"
        return str(value)
