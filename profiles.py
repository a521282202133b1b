"""
Role profiles: which binaries and config files each kind of node is expected
to have, loaded once per run from cfg/config.yaml.
"""
from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import yaml

from errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yaml"
CFG_DIR_ENV = "KUBE_AUDIT_CFG_DIR"
DEFAULT_CFG_DIR = Path(__file__).resolve().parent / "cfg"


class Role(str, Enum):
    MASTER = "master"
    NODE = "node"
    FEDERATED = "federated"


@dataclass(frozen=True)
class BinarySpec:
    name: str
    candidates: tuple[str, ...]
    default: str
    optional: bool = False


@dataclass(frozen=True)
class ConfigSpec:
    name: str
    path: str


@dataclass(frozen=True)
class RoleProfile:
    role: Role
    controls_file: Path
    bins: tuple[BinarySpec, ...]
    confs: tuple[ConfigSpec, ...]


@dataclass(frozen=True)
class BenchConfig:
    config_file: Path
    kube_version: tuple[str, str]
    profiles: dict[Role, RoleProfile]
    optional_bins: tuple[BinarySpec, ...] = ()
    optional_confs: tuple[ConfigSpec, ...] = ()


def resolve(config: BenchConfig, role: Role) -> RoleProfile:
    """Look up the profile for a role. An unknown role is a programming error."""
    try:
        return config.profiles[Role(role)]
    except (KeyError, ValueError):
        raise ValueError(f"unrecognized role: {role!r}") from None


def find_cfg_dir(cli_value: str | None = None) -> Path:
    if cli_value:
        return Path(cli_value)
    env_value = os.environ.get(CFG_DIR_ENV)
    if env_value:
        return Path(env_value)
    return DEFAULT_CFG_DIR


def _parse_bins(section, optional: bool) -> tuple[BinarySpec, ...]:
    specs = []
    for name, entry in (section or {}).items():
        if isinstance(entry, str):
            entry = {"candidates": [entry]}
        if not isinstance(entry, dict):
            raise ConfigError(f"binary {name!r}: expected a mapping, got {type(entry).__name__}")
        candidates = entry.get("candidates") or []
        if isinstance(candidates, str):
            candidates = [candidates]
        default = entry.get("default") or (candidates[0] if candidates else "")
        if not default:
            raise ConfigError(f"binary {name!r} has neither candidates nor a default")
        specs.append(BinarySpec(
            name=str(name),
            candidates=tuple(str(c) for c in candidates) or (str(default),),
            default=str(default),
            optional=optional,
        ))
    return tuple(specs)


def _parse_confs(section) -> tuple[ConfigSpec, ...]:
    return tuple(ConfigSpec(name=str(name), path=str(path))
                 for name, path in (section or {}).items())


def _parse_version(raw) -> tuple[str, str]:
    parts = str(raw).lstrip("v").split(".")
    if len(parts) < 2 or not all(p.isdigit() for p in parts[:2]):
        raise ConfigError(f"kubernetes version must look like MAJOR.MINOR, got {raw!r}")
    return parts[0], parts[1]


def load_config(cfg_dir: Path, kube_version: str | None = None) -> BenchConfig:
    """
    Read cfg_dir/config.yaml and build the per-run configuration.

    kube_version, when given, overrides kubernetes.version from the file.
    """
    config_file = Path(cfg_dir) / CONFIG_FILE
    try:
        with config_file.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"unable to read config file {config_file}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"unable to parse config file {config_file}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"config file {config_file} is empty or not a mapping")

    controls = raw.get("controls") or {}
    profiles = {}
    for role in Role:
        section = raw.get(role.value)
        if not isinstance(section, dict) or "bins" not in section or "confs" not in section:
            raise ConfigError(f"config file {config_file}: section {role.value!r} needs 'bins' and 'confs'")
        controls_file = controls.get(role.value, f"{role.value}.yaml")
        profiles[role] = RoleProfile(
            role=role,
            controls_file=Path(cfg_dir) / controls_file,
            bins=_parse_bins(section["bins"], optional=False),
            confs=_parse_confs(section["confs"]),
        )

    optional = raw.get("optional") or {}
    version = kube_version or (raw.get("kubernetes") or {}).get("version", "1.7")

    config = BenchConfig(
        config_file=config_file,
        kube_version=_parse_version(version),
        profiles=profiles,
        optional_bins=_parse_bins(optional.get("bins"), optional=True),
        optional_confs=_parse_confs(optional.get("confs")),
    )
    logger.debug("Loaded config from %s", config_file)
    return config
