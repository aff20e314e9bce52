"""Config module for trainer configuration loading."""

from .loader import TrainerConfig, load_config, get_preset_path

__all__ = ["TrainerConfig", "load_config", "get_preset_path"]
