from __future__ import annotations

"""
Layered configuration: CLI > environment > YAML file > default.

Each recognized option is declared once as an `Option`. `resolve_options()` walks
the layers in order and runs the option's parser on the first value found;
defaults are taken as-is. Parser failures become ConfigurationError so callers
can abort before doing any work.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

import yaml

from common.utils import unique


DEFAULT_CONFIG_PATH = "config/params.yaml"


class ConfigurationError(ValueError):
    """Invalid or missing configuration; fatal for the whole run."""


@dataclass(frozen=True)
class Option:
    name: str
    env: Optional[str] = None
    default: Any = None
    parse: Callable[[Any], Any] = str


def _is_set(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    if isinstance(value, (list, tuple)) and not value:
        return False
    return True


def resolve_options(
    options: Iterable[Option],
    cli: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    file_cfg: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Return {option.name: value} using the first layer that sets each option."""
    cli = cli or {}
    env = os.environ if env is None else env
    file_cfg = file_cfg or {}

    out: Dict[str, Any] = {}
    for opt in options:
        layers = (
            ("cli", cli.get(opt.name)),
            ("env", env.get(opt.env) if opt.env else None),
            ("file", file_cfg.get(opt.name)),
        )
        for source, raw in layers:
            if not _is_set(raw):
                continue
            try:
                out[opt.name] = opt.parse(raw)
            except (TypeError, ValueError) as e:
                where = opt.env if source == "env" else opt.name
                raise ConfigurationError(f"invalid value for {where} ({source}): {raw!r}: {e}") from e
            break
        else:
            out[opt.name] = opt.default
    return out


def load_config_file(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the YAML config file. A missing file is not an error (empty dict);
    a file that does not parse to a mapping is.
    """
    p = Path(path or os.environ.get("TILEKIT_CONFIG") or DEFAULT_CONFIG_PATH)
    if not p.exists():
        return {}
    try:
        with p.open("r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"cannot parse {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{p} must contain a mapping at top level")
    return data


def section(cfg: Mapping[str, Any], name: str) -> Dict[str, Any]:
    """Sub-mapping `name` of a loaded config, {} if absent."""
    sub = cfg.get(name) or {}
    if not isinstance(sub, dict):
        raise ConfigurationError(f"config section '{name}' must be a mapping")
    return sub


# -------------------------
# Value parsers
# -------------------------
def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    raise ValueError("expected a boolean")


def parse_float(value: Any) -> float:
    f = float(value)
    if f != f or f in (float("inf"), float("-inf")):
        raise ValueError("expected a finite number")
    return f


def parse_non_negative_float(value: Any) -> float:
    f = parse_float(value)
    if f < 0:
        raise ValueError("must be >= 0")
    return f


def parse_positive_float(value: Any) -> float:
    f = parse_float(value)
    if f <= 0:
        raise ValueError("must be > 0")
    return f


def _parse_int(value: Any) -> int:
    """int(), but a float with a fractional part (e.g. YAML `2.7`) is an error, not truncated."""
    if isinstance(value, bool):
        raise ValueError("expected an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError("expected an integer")
    return int(value)


def parse_positive_int(value: Any) -> int:
    i = _parse_int(value)
    if i < 1:
        raise ValueError("must be >= 1")
    return i


def parse_non_negative_int(value: Any) -> int:
    i = _parse_int(value)
    if i < 0:
        raise ValueError("must be >= 0")
    return i


def parse_port(value: Any) -> int:
    i = _parse_int(value)
    if not (0 < i < 65536):
        raise ValueError("port must be in 1..65535")
    return i


def parse_csv(value: Any) -> tuple:
    """'a, b,,c' or ['a', 'b'] -> ('a', 'b', 'c'); blanks and repeats dropped."""
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = [str(v) for v in value]
    return tuple(unique(p for p in (s.strip() for s in parts) if p))
