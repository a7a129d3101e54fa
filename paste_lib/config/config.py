"""Runtime configuration.

Settings live in a YAML file laid out in sections:

    main:
      discussion: true
      discussiondatedisplay: true
      log_level: INFO
    expire:
      default: 1week
    expire_options:
      5min: 300
      never: 0
    formatter_options: [plaintext, syntaxhighlighting, markdown]
    purge:
      limit: 300
      batchsize: 10
    model:
      class: database
    model_options:
      dsn: sqlite:///data/paste.sq3
      usr: null
      pwd: null
      opt: null
      tbl: paste_

Backend options are passed through untouched; each storage driver
validates its own.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from paste_lib.storage.serializer import YAMLSerializer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("data/config/pastestore.yml")

DEFAULT_EXPIRE_OPTIONS: Dict[str, int] = {
    "5min": 300,
    "10min": 600,
    "1hour": 3600,
    "1day": 86400,
    "1week": 604800,
    "1month": 2592000,
    "1year": 31536000,
    "never": 0,
}
DEFAULT_FORMATTERS = ("plaintext", "syntaxhighlighting", "markdown")


class ConfigError(ValueError):
    """Raised when the configuration file cannot be used."""


@dataclass
class Config:
    discussion: bool = True
    discussion_date_display: bool = True
    default_expire: str = "1week"
    expire_options: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_EXPIRE_OPTIONS))
    formatter_options: List[str] = field(default_factory=lambda: list(DEFAULT_FORMATTERS))
    # seconds between two purge sweeps, 0 disables the limit
    purge_limit: int = 300
    purge_batchsize: int = 10
    model: str = "filesystem"
    model_options: Dict[str, Any] = field(default_factory=lambda: {"dir": "data"})
    log_level: str = "WARNING"

    def expire_seconds(self, name: Optional[str]) -> int:
        """Lifetime for an expire option name, falling back to the default."""
        if name in self.expire_options:
            return int(self.expire_options[name])
        return int(self.expire_options.get(self.default_expire, 0))


def _int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"section '{name}' must be a mapping")
    return value


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from YAML, or return defaults if the file is missing."""
    cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        logger.info("No configuration at %s; using defaults", cfg_path)
        return Config()

    try:
        raw = YAMLSerializer().load(cfg_path.read_bytes()) or {}
    except Exception as exc:
        raise ConfigError(f"cannot parse {cfg_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{cfg_path} must contain a mapping")

    cfg = Config()
    main = _section(raw, "main")
    cfg.discussion = bool(main.get("discussion", cfg.discussion))
    cfg.discussion_date_display = bool(main.get("discussiondatedisplay", cfg.discussion_date_display))
    cfg.log_level = str(main.get("log_level", cfg.log_level))

    cfg.default_expire = str(_section(raw, "expire").get("default", cfg.default_expire))
    expire_options = _section(raw, "expire_options")
    if expire_options:
        cfg.expire_options = {str(k): _int(v, f"expire_options.{k}") for k, v in expire_options.items()}

    formatters = raw.get("formatter_options")
    if isinstance(formatters, dict):
        cfg.formatter_options = [str(k) for k in formatters]
    elif isinstance(formatters, list):
        cfg.formatter_options = [str(k) for k in formatters]

    purge = _section(raw, "purge")
    cfg.purge_limit = _int(purge.get("limit", cfg.purge_limit), "purge.limit")
    cfg.purge_batchsize = _int(purge.get("batchsize", cfg.purge_batchsize), "purge.batchsize")

    model = raw.get("model")
    if isinstance(model, dict):
        model = model.get("class")
    if model:
        cfg.model = str(model)
    if "model_options" in raw:
        cfg.model_options = _section(raw, "model_options")

    logger.debug("Loaded configuration from %s (model=%s)", cfg_path, cfg.model)
    return cfg
