from .config_loader import get_config
from .data_utils import load_data

__all__ = ["load_data", "get_config"]
