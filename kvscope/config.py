"""Explorer configuration."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
import tomllib

from kvscope.decode.engine import DEFAULT_MAX_DECODE_DEPTH
from kvscope.errors import ConfigError
from kvscope.nodes import SortOrder

logger = logging.getLogger(__name__)

AUTO_DECODE_MODES = ("off", "lazy", "eager")
CONFIG_FILENAME = "kvscope.toml"


@dataclass
class ExplorerConfig:
    """Settings passed to every explorer component at startup."""

    # Display
    sort_order: str = SortOrder.ASCENDING.value

    # Decoding
    allow_decode: bool = True
    auto_decode: str = "off"  # or "lazy" / "eager"
    max_decode_depth: int = DEFAULT_MAX_DECODE_DEPTH

    # Search
    search_debounce_ms: int = 150
    search_result_limit: int = 0  # 0 = unlimited

    # Completion
    completion_limit: int = 50

    # Expression language
    evaluator_backend: str = "simpleeval"
    function_examples: dict[str, dict] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate config values. Raises ConfigError (a ValueError) on invalid config."""
        if self.sort_order not in {o.value for o in SortOrder}:
            raise ConfigError(f"sort_order must be one of ascending, descending, none (got {self.sort_order!r})")
        if self.auto_decode not in AUTO_DECODE_MODES:
            raise ConfigError(f"auto_decode must be one of {', '.join(AUTO_DECODE_MODES)}")
        if self.max_decode_depth < 1:
            raise ConfigError("max_decode_depth must be >= 1")
        if self.search_debounce_ms < 0:
            raise ConfigError("search_debounce_ms cannot be negative")
        if self.search_result_limit < 0:
            raise ConfigError("search_result_limit cannot be negative")
        if self.completion_limit < 0:
            raise ConfigError("completion_limit cannot be negative")


def find_config_file(start: Path | None = None) -> Path | None:
    """Nearest kvscope.toml at or above ``start`` (default: the cwd).

    The walk stops at the first directory holding ``.git``.
    """
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if (directory / ".git").exists():
            break
    return None


def _read_toml(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc


def load_explorer_config(config_path: Path | None = None) -> ExplorerConfig:
    """Load explorer config from kvscope.toml [kvscope] section.

    ``config_path`` may name the TOML file itself or a directory holding one;
    without it the nearest kvscope.toml above the working directory is used.
    Missing files mean defaults, except an explicit file path that does not exist.
    """
    if config_path is None:
        config_path = find_config_file()
    elif config_path.is_dir():
        config_path = config_path / CONFIG_FILENAME
        if not config_path.is_file():
            config_path = None
    elif not config_path.is_file():
        raise ConfigError(f"config file not found: {config_path}")

    full_config = _read_toml(config_path) if config_path is not None else {}
    logger.debug("config from %s", config_path or "defaults")
    data = dict(full_config.get("kvscope", {}))
    return _parse_kvscope_section(data)


def _parse_kvscope_section(data: dict) -> ExplorerConfig:
    """Parse [kvscope] section into ExplorerConfig, merging with defaults.

    Handles nested sections: decode, search, completion, functions.
    """
    defaults = ExplorerConfig()

    decode_data = data.pop("decode", {})
    search_data = data.pop("search", {})
    completion_data = data.pop("completion", {})
    functions_data = data.pop("functions", {})

    overrides = {}

    # [kvscope.decode]
    if "allow" in decode_data:
        overrides["allow_decode"] = decode_data.pop("allow")
    if "auto" in decode_data:
        overrides["auto_decode"] = decode_data.pop("auto")
    if "max_depth" in decode_data:
        overrides["max_decode_depth"] = decode_data.pop("max_depth")

    # [kvscope.search]
    if "debounce_ms" in search_data:
        overrides["search_debounce_ms"] = search_data.pop("debounce_ms")
    if "result_limit" in search_data:
        overrides["search_result_limit"] = search_data.pop("result_limit")

    # [kvscope.completion]
    if "limit" in completion_data:
        overrides["completion_limit"] = completion_data.pop("limit")

    # [kvscope.functions.<name>]
    if functions_data:
        overrides["function_examples"] = {
            name: dict(entry) for name, entry in functions_data.items() if isinstance(entry, dict)
        }

    for section, leftover in (("decode", decode_data), ("search", search_data), ("completion", completion_data)):
        for key in leftover:
            logger.warning("Ignoring unknown config key [kvscope.%s] %s", section, key)

    # Handle remaining flat fields
    for key, value in data.items():
        if key in ExplorerConfig.__dataclass_fields__:
            overrides[key] = value
        else:
            logger.warning("Ignoring unknown config key [kvscope] %s", key)

    config = dataclasses.replace(defaults, **overrides)
    config.validate()
    return config
