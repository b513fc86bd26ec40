"""Core functionality"""
from .config import load_config, get_config
from .security import verify_api_key

__all__ = ["load_config", "get_config", "verify_api_key"]
