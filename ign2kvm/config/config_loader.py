# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/config/config_loader.py
"""
YAML configuration for the provisioning pipeline.

Files are merged in order (later wins, mappings merged recursively), then
IGN2KVM_<KEY> environment variables are applied on top, then the result is
validated into a ProvisionConfig.

Example:

    libvirt_uri: qemu:///system
    pool_name: default
    arch: s390x
    elevate: true
    command_timeout: 300
"""
from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml

from ..core.exceptions import ConfigError

ENV_PREFIX = "IGN2KVM_"


@dataclass(frozen=True)
class ProvisionConfig:
    libvirt_uri: str = "qemu:///system"
    pool_name: str = "default"
    arch: str = "s390x"
    target_dev: str = "vdb"

    iso_tool: str = "genisoimage"
    guestfish: str = "guestfish"
    elevate: bool = True
    elevate_with: str = "sudo"
    work_dir: Optional[str] = None

    command_timeout: float = 300.0
    listen_timeout: float = 60.0

    delete_partial_volumes: bool = True

    boot_label: str = "boot"
    ignition_path: str = "/ignition/config.ign"

    @classmethod
    def field_types(cls) -> Dict[str, Any]:
        return {f.name: f.type for f in dataclasses.fields(cls)}

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "ProvisionConfig":
        types = cls.field_types()
        unknown = sorted(set(conf) - set(types))
        if unknown:
            raise ConfigError(msg=f"unknown configuration keys: {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for key, raw in conf.items():
            values[key] = _coerce(key, types[key], raw)
        return cls(**values)

    @classmethod
    def from_env(cls, base: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None) -> "ProvisionConfig":
        merged = dict(base or {})
        merged.update(env_overrides(environ))
        return cls.from_mapping(merged)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def _coerce(key: str, typ: str, raw: Any) -> Any:
    # dataclass field types are strings under `from __future__ import annotations`
    if raw is None:
        if typ.startswith("Optional"):
            return None
        raise ConfigError(msg=f"configuration key {key!r} may not be null")

    if typ == "bool":
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(raw, str) and raw.strip().lower() in ("0", "false", "no", "off"):
            return False
        raise ConfigError(msg=f"configuration key {key!r} must be a boolean, got {raw!r}")

    if typ == "float":
        if isinstance(raw, bool):
            raise ConfigError(msg=f"configuration key {key!r} must be a number, got {raw!r}")
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(msg=f"configuration key {key!r} must be a number, got {raw!r}", cause=e) from e
        if value <= 0:
            raise ConfigError(msg=f"configuration key {key!r} must be positive, got {raw!r}")
        return value

    if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
        raise ConfigError(msg=f"configuration key {key!r} must be a string, got {raw!r}")
    value = str(raw).strip()
    if not value:
        raise ConfigError(msg=f"configuration key {key!r} may not be empty")
    return value


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    environ = os.environ if environ is None else environ
    keys = ProvisionConfig.field_types()
    out: Dict[str, str] = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name[len(ENV_PREFIX):].lower()
        if key in keys:
            out[key] = value
    return out


def _deep_merge(base: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in extra.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
            out[k] = _deep_merge(dict(out[k]), v)
        else:
            out[k] = v
    return out


class Config:
    @staticmethod
    def load(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        path = Path(path).expanduser()
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(msg=f"cannot read config {path}: {e}", cause=e, context={"path": str(path)}) from e
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(msg=f"invalid YAML in {path}: {e}", cause=e, context={"path": str(path)}) from e

        if data is None:
            logger.debug("Config %s is empty", path)
            return {}
        if not isinstance(data, dict):
            raise ConfigError(msg=f"config {path} must be a mapping, got {type(data).__name__}", context={"path": str(path)})
        logger.debug("Loaded config %s (%d keys)", path, len(data))
        return data

    @staticmethod
    def load_many(logger: logging.Logger, paths: Sequence[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            merged = _deep_merge(merged, Config.load(logger, Path(p)))
        return merged

    @staticmethod
    def expand_configs(logger: logging.Logger, paths: Iterable[str]) -> List[Path]:
        """Expand directories into their *.yaml / *.yml files, sorted by name."""
        out: List[Path] = []
        for raw in paths:
            p = Path(raw).expanduser()
            if p.is_dir():
                found = sorted(list(p.glob("*.yaml")) + list(p.glob("*.yml")))
                logger.debug("Expanded config dir %s -> %d files", p, len(found))
                out.extend(found)
            else:
                out.append(p)
        return out

    @staticmethod
    def provision_config(logger: logging.Logger, paths: Sequence[str] = (), environ: Optional[Mapping[str, str]] = None) -> ProvisionConfig:
        conf = Config.load_many(logger, Config.expand_configs(logger, paths))
        return ProvisionConfig.from_env(conf, environ)
