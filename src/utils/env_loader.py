import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def get_env_var(key: str, default: Optional[str] = None) -> Optional[str]:
    """Retrieve an environment variable. Args: key (str): Environment variable name. default (Optional[str]): Default value. Returns: Optional[str]: Environment variable value."""
    return os.getenv(key, default)


def get_log_level_name(default: str = "INFO") -> str:
    """Return the configured log level name. Args: default (str): Fallback level name. Returns: str: Upper-cased level name."""
    return (get_env_var("LOG_LEVEL", default) or default).upper()
