"""Build application configuration from code blocks in Markdown documents."""

from .config import MdConfConfig, load_config
from .pipeline import Pipeline

__version__ = "0.1.0"

__all__ = ["MdConfConfig", "Pipeline", "load_config"]
