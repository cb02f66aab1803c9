"""Scan configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml

from hkscan.errors import ConfigurationError
from hkscan.map import GeneticMapFunc

PSEUDOMARKER_POLICIES = ("stepped", "minimal", "none")


@dataclass
class ScanConfig:
    """Settings of a Haley-Knott genome scan."""

    map_function: str = "haldane"
    step: float = 2.0
    pseudomarkers: str = "minimal"
    error_prob: float = 0.002
    lod_threshold: float = 2.0
    threads: int = 1
    drop_x: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        try:
            self.map_function = GeneticMapFunc.from_name(self.map_function).value
        except ValueError as e:
            raise ConfigurationError(str(e))

        self.pseudomarkers = str(self.pseudomarkers).lower()
        if self.pseudomarkers not in PSEUDOMARKER_POLICIES:
            raise ConfigurationError(
                f"Invalid pseudomarkers policy: {self.pseudomarkers} (expected one of {PSEUDOMARKER_POLICIES})"
            )

        if self.step <= 0:
            raise ConfigurationError(f"Invalid step: {self.step}")

        if not 0.0 < self.error_prob < 1.0:
            raise ConfigurationError(f"Invalid error_prob: {self.error_prob}")

        if self.threads <= 0:
            raise ConfigurationError(f"Invalid threads: {self.threads}")

    @property
    def genetic_map_func(self) -> GeneticMapFunc:
        return GeneticMapFunc.from_name(self.map_function)

    @classmethod
    def from_yaml(cls, yaml_file: Path) -> "ScanConfig":
        """Load configuration from YAML file."""
        yaml_file = Path(yaml_file)
        if not yaml_file.exists():
            raise ConfigurationError(f"Config file not found: {yaml_file}")

        try:
            with open(yaml_file, "r") as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML config: {e}")
        except TypeError as e:
            raise ConfigurationError(f"Invalid config parameters: {e}")

    @classmethod
    def from_args(cls, args, base: "ScanConfig" = None) -> "ScanConfig":
        """Create configuration from parsed command-line arguments.

        Arguments left at None keep the value of ``base`` (or the default).
        """
        values = asdict(base) if base is not None else {}
        for f in fields(cls):
            value = getattr(args, f.name, None)
            if value is not None:
                values[f.name] = value
        return cls(**values)

    def show(self) -> str:
        return ", ".join(f"{k} = {v}" for k, v in asdict(self).items())
