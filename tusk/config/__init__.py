"""Configuration module: exports Settings, PipelineConfig and load_config."""

from tusk.config.loader import load_config
from tusk.config.pipeline import PipelineConfig
from tusk.config.settings import Settings

__all__ = ["PipelineConfig", "Settings", "load_config"]
