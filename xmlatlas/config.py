"""YAML configuration for xmlatlas runs."""

import os
from dataclasses import asdict, dataclass, field, fields
from typing import Optional

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = os.path.join("config", "default.yaml")


@dataclass
class ProcessingConfig:
    num_threads: int = 0        # 0 = executor default
    max_depth: int = 0          # 0 = unlimited
    file_extensions: list[str] = field(default_factory=lambda: ["xml", "tei"])


@dataclass
class OutputConfig:
    output_file: str = "xml_structures.json"
    pretty_print: bool = True
    include_paths: bool = True


@dataclass
class LoggingConfig:
    level: str = "info"
    log_file: Optional[str] = None


@dataclass
class AtlasConfig:
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "AtlasConfig":
        return cls()

    @classmethod
    def from_file(cls, path: str) -> "AtlasConfig":
        """Load a YAML config file. Missing sections and keys keep their defaults."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        return cls.from_dict(data or {}, source=path)

    @classmethod
    def from_dict(cls, data: dict, source: str = "<config>") -> "AtlasConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"{source}: top level must be a mapping")
        unknown = set(data) - {"processing", "output", "logging"}
        if unknown:
            raise ConfigError(f"{source}: unknown section(s): {', '.join(sorted(unknown))}")

        config = cls(
            processing=_load_section(ProcessingConfig, data.get("processing"), "processing", source),
            output=_load_section(OutputConfig, data.get("output"), "output", source),
            logging=_load_section(LoggingConfig, data.get("logging"), "logging", source),
        )
        p = config.processing
        if p.num_threads < 0 or p.max_depth < 0:
            raise ConfigError(f"{source}: num_threads and max_depth must be >= 0")
        if not all(isinstance(e, str) for e in p.file_extensions):
            raise ConfigError(f"{source}: processing.file_extensions must be a list of strings")
        return config

    def merge_with_cli(
        self,
        output: Optional[str] = None,
        threads: Optional[int] = None,
        max_depth: Optional[int] = None,
        log_level: Optional[str] = None,
        no_pretty: bool = False,
    ) -> "AtlasConfig":
        """Apply command-line overrides in place and return self."""
        if output is not None:
            self.output.output_file = output
        if threads is not None:
            self.processing.num_threads = threads
        if max_depth is not None:
            self.processing.max_depth = max_depth
        if log_level is not None:
            self.logging.level = log_level
        if no_pretty:
            self.output.pretty_print = False
        return self

    def to_dict(self) -> dict:
        return asdict(self)


# Expected type per field. bool is an int subclass and is rejected for int fields
_FIELD_TYPES = {
    "num_threads": int,
    "max_depth": int,
    "file_extensions": list,
    "output_file": str,
    "pretty_print": bool,
    "include_paths": bool,
    "level": str,
    "log_file": (str, type(None)),
}


def _load_section(section_cls, raw, name: str, source: str):
    if raw is None:
        return section_cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"{source}: section '{name}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"{source}: unknown key(s) in '{name}': {', '.join(sorted(unknown))}")

    for key, value in raw.items():
        expected = _FIELD_TYPES[key]
        if expected is int and isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(f"{source}: {name}.{key} has invalid value {value!r}")
    return section_cls(**raw)
