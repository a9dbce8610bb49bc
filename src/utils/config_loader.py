import json
import os
from typing import Any, Dict, Optional

from src.model.config_schema_model import Config
from src.utils.env_loader import get_env_var
from src.utils.logger import get_logger

logger = get_logger(__name__)

_CONFIG: Optional[Dict[str, Any]] = None

_ENV_OVERRIDES = {
    "SALARY_DATASET_PATH": ("dataset", "path"),
    "SALARY_CACHE_DIR": ("cache", "directory"),
    "SALARY_BUNDLED_MODEL_DIR": ("cache", "bundled_directory"),
    "MLFLOW_EXPERIMENT_NAME": ("tracking", "experiment_name"),
}


def load_config(config_path: str = "config.json") -> Dict[str, Any]:
    """Load the configuration from a JSON file. Args: config_path (str): Config file path. Returns: Dict[str, Any]: Loaded configuration. Raises: ValidationError: If the file content is invalid."""
    global _CONFIG
    if _CONFIG is not None:
        return _CONFIG

    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        config_path = os.path.join(base_dir, "config.json")

    config_dict: Dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_dict = json.load(f)
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    _apply_env_overrides(config_dict)

    config = Config(**config_dict).model_dump()
    logger.debug("Config validated successfully using Pydantic model")

    _CONFIG = config

    return _CONFIG


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    """Apply environment variable overrides in place. Args: config (Dict[str, Any]): Raw configuration dictionary. Returns: None."""
    for env_key, (section, field) in _ENV_OVERRIDES.items():
        value = get_env_var(env_key)
        if value:
            config.setdefault(section, {})[field] = value


def get_config() -> Dict[str, Any]:
    """Return the loaded configuration. Loads it if not already loaded. Returns: Dict[str, Any]: Configuration dictionary."""
    if _CONFIG is None:
        return load_config()
    return _CONFIG


def reset_config() -> None:
    """Forget the loaded configuration so the next access reloads it."""
    global _CONFIG
    _CONFIG = None
