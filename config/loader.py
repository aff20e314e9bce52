"""YAML config loader for trainer settings."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

MODES = ("full", "sampled")
SAMPLING_SCHEMES = ("subset", "external")
FALLBACK_NAMES = ("estimate", "zero")

# Python frames per tree level stay well below the interpreter recursion limit
MAX_DEPTH_LIMIT = 512


@dataclass
class TrainerConfig:
    """Configuration for a training run.

    Attributes:
        iterations: Number of CFR iterations run by default.
        mode: "full" for CFR+ over the whole tree, "sampled" for MCCFR.
        sampling: MCCFR scheme, "subset" or "external" (sampled mode only).
        sample_rate: Fraction of branches expanded per node (subset sampling).
        exploration: Uniform mixing for sampled opponent actions (external sampling).
        max_depth: Tree depth at which traversal stops and the fallback is used.
        workers: Number of parallel workers sharing the node table.
        num_shards: Number of lock shards in the node table.
        fallback: Depth-cutoff evaluation, "estimate" or "zero".
        seed: Seed for sampling (None draws fresh entropy).
        verbose: Show a progress bar while training.
    """
    iterations: int = 1000
    mode: str = "full"
    sampling: str = "subset"
    sample_rate: float = 1.0
    exploration: float = 0.0
    max_depth: int = 15
    workers: int = 1
    num_shards: int = 64
    fallback: str = "estimate"
    seed: Optional[int] = None
    verbose: bool = False

    def __post_init__(self):
        self.validate()

    @property
    def sampled(self) -> bool:
        return self.mode == "sampled"

    def validate(self) -> None:
        """Check every field.

        Raises:
            ValueError: If a field has the wrong type or is out of range.
        """
        _check_int("iterations", self.iterations, minimum=0)
        _check_int("max_depth", self.max_depth, minimum=1, maximum=MAX_DEPTH_LIMIT)
        _check_int("workers", self.workers, minimum=1)
        _check_int("num_shards", self.num_shards, minimum=1)
        _check_choice("mode", self.mode, MODES)
        _check_choice("sampling", self.sampling, SAMPLING_SCHEMES)
        _check_choice("fallback", self.fallback, FALLBACK_NAMES)

        if isinstance(self.sample_rate, bool) or not isinstance(self.sample_rate, (int, float)):
            raise ValueError(f"sample_rate must be a number, got: {type(self.sample_rate).__name__}")
        if not 0.0 < self.sample_rate <= 1.0:
            raise ValueError(f"sample_rate must be in (0, 1], got: {self.sample_rate}")

        if isinstance(self.exploration, bool) or not isinstance(self.exploration, (int, float)):
            raise ValueError(f"exploration must be a number, got: {type(self.exploration).__name__}")
        if not 0.0 <= self.exploration <= 1.0:
            raise ValueError(f"exploration must be in [0, 1], got: {self.exploration}")

        if self.seed is not None:
            _check_int("seed", self.seed, minimum=0)
        if not isinstance(self.verbose, bool):
            raise ValueError(f"verbose must be true or false, got: {self.verbose!r}")


def _check_int(name: str, value, minimum: int, maximum: Optional[int] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got: {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got: {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got: {value}")


def _check_choice(name: str, value, choices) -> None:
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}, got: {value!r}")


def load_config(path: str) -> TrainerConfig:
    """Load configuration from a YAML file.

    Missing keys take their TrainerConfig defaults.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        TrainerConfig with loaded settings.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the file is not a mapping, has unknown keys or invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML syntax: {e}")

    # An empty file means all defaults
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Config file must contain a YAML mapping (dict), not a scalar or list")

    known = {f.name for f in fields(TrainerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config field(s): {', '.join(map(str, unknown))}")

    # YAML reads 1 as int; accept it for float fields
    for name in ("sample_rate", "exploration"):
        if isinstance(data.get(name), int) and not isinstance(data.get(name), bool):
            data[name] = float(data[name])

    return TrainerConfig(**data)


def get_preset_path(name: str) -> str:
    """Get the path to a preset configuration file.

    Args:
        name: Name of the preset (without .yaml extension).

    Returns:
        Absolute path to the preset file.
    """
    module_dir = Path(__file__).parent
    preset_path = module_dir / "presets" / f"{name}.yaml"
    return str(preset_path.resolve())
