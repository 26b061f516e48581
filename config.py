"""Bundle options and config-file loading."""

import json
import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from stream.readable import DEFAULT_HIGH_WATER_MARK


# Table name inside TOML files (and [tool.<name>] in pyproject.toml).
CONFIG_SECTION = "modconcat"

# camelCase spellings accepted for compatibility with existing config files.
KEY_ALIASES = {
    "outputPath": "output_path",
    "excludeFiles": "exclude_files",
    "excludeNodeModules": "exclude_node_modules",
    "highWaterMark": "high_water_mark",
}


class ConfigError(ValueError):
    """Raised for unreadable config files and invalid option values."""


@dataclass
class BundleOptions:
    """
    Options controlling how a project is concatenated.

    Attributes:
        output_path: Where the bundle will be written. Enables rewriting of
            `__dirname` / `__filename` relative to that location.
        exclude_files: Files never added to the bundle, even when required.
        exclude_node_modules: Leave `require()` calls for packages (anything
            not starting with "./", "../" or "/") untouched.
        browser: Also try to bundle core modules, and prefer the "browser"
            field of package.json over "main".
        high_water_mark: Characters buffered before the stream pauses.
        encoding: Encoding of the module sources.
    """

    output_path: Optional[str] = None
    exclude_files: List[str] = field(default_factory=list)
    exclude_node_modules: bool = False
    browser: bool = False
    high_water_mark: int = DEFAULT_HIGH_WATER_MARK
    encoding: str = "utf-8"

    def __post_init__(self):
        if isinstance(self.exclude_files, (str, os.PathLike)):
            self.exclude_files = [self.exclude_files]
        self.exclude_files = [os.path.abspath(os.fspath(p)) for p in self.exclude_files]
        if self.output_path is not None:
            self.output_path = os.fspath(self.output_path)
        if not isinstance(self.high_water_mark, int) or self.high_water_mark < 0:
            raise ConfigError(f"Invalid high_water_mark: {self.high_water_mark!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BundleOptions":
        """Build options from a mapping using snake_case or camelCase keys."""
        return cls(**_normalize_keys(data))

    @classmethod
    def coerce(
        cls,
        options: Union["BundleOptions", Mapping[str, Any], None] = None,
        **overrides: Any,
    ) -> "BundleOptions":
        """Accept options in any supported form and apply keyword overrides."""
        if options is None:
            base = cls()
        elif isinstance(options, cls):
            base = options
        else:
            base = cls.from_mapping(options)
        return base.merged(**overrides)

    def merged(self, **overrides: Any) -> "BundleOptions":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in _normalize_keys(overrides).items() if v is not None}
        if not values:
            return self
        return replace(self, **values)


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(BundleOptions)}
    result: Dict[str, Any] = {}
    for key, value in data.items():
        name = KEY_ALIASES.get(key, key)
        if name not in known:
            raise ConfigError(f"Unknown option: {key!r}")
        result[name] = value
    return result


def parse_config_file(config_path: Path) -> Dict[str, Any]:
    """
    Parse a YAML, TOML or JSON config file into a dictionary.

    Args:
        config_path: Path to the file; the suffix selects the format.

    Returns:
        The option mapping found in the file (empty if the file is empty).

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    suffix = config_path.suffix.lower()

    try:
        content = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(content)
        elif suffix == ".toml":
            data = tomllib.loads(content)
            if config_path.name == "pyproject.toml":
                data = data.get("tool", {}).get(CONFIG_SECTION, {})
            elif CONFIG_SECTION in data:
                data = data[CONFIG_SECTION]
        else:
            data = json.loads(content)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return data


def load_config(config_path: Union[str, Path]) -> BundleOptions:
    """
    Load bundle options from a config file.

    Relative paths in the file are taken relative to the file's directory.
    """
    config_path = Path(config_path)
    data = _normalize_keys(parse_config_file(config_path))
    base_dir = config_path.resolve().parent

    if data.get("output_path"):
        data["output_path"] = str(base_dir / data["output_path"])
    excludes = data.get("exclude_files")
    if isinstance(excludes, str):
        excludes = [excludes]
    if excludes:
        data["exclude_files"] = [str(base_dir / p) for p in excludes]

    return BundleOptions(**data)
