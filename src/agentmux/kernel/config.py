from __future__ import annotations

import re
from pathlib import Path
from typing import List

import yaml  # type: ignore
from pydantic import ValidationError

from ..contracts.v1 import SessionConfig
from ..errors import ConfigError, ConfigNotFound
from ..paths import configs_dir

_CONFIG_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")


def config_path(root: Path, name: str) -> Path:
    wanted = (name or "").strip()
    if not _CONFIG_NAME_RE.match(wanted):
        raise ConfigNotFound(f"invalid config name: {name!r}")
    base = configs_dir(root)
    for suffix in (".yaml", ".yml"):
        p = base / f"{wanted}{suffix}"
        if p.is_file():
            return p
    raise ConfigNotFound(f"config not found: {wanted}", details={"searched": str(base)})


def parse_config(text: str, *, default_name: str = "") -> SessionConfig:
    try:
        doc = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"config is not valid YAML: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError("config must be a mapping")
    doc.setdefault("name", default_name)
    try:
        return SessionConfig.model_validate(doc)
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}", details={"errors": e.errors(include_url=False, include_context=False)}) from e


def load_config(root: Path, name: str) -> SessionConfig:
    p = config_path(root, name)
    return parse_config(p.read_text(encoding="utf-8"), default_name=name)


def list_configs(root: Path) -> List[str]:
    base = configs_dir(root)
    if not base.is_dir():
        return []
    return sorted({p.stem for p in base.iterdir() if p.suffix in (".yaml", ".yml") and p.is_file()})
