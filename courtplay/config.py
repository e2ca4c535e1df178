"""Court and playback configuration management."""

from functools import lru_cache
from pathlib import Path

from .schemas import CourtConfig
from .utils import load_json

CONFIG_PATH = Path(__file__).parent.parent / 'data' / 'court_config.json'


@lru_cache(maxsize=1)
def get_config() -> CourtConfig:
    """
    Load court configuration from data/court_config.json.

    Falls back to the built-in defaults when the file does not exist.
    Configuration is cached after first load.

    Returns:
        CourtConfig object with validated settings

    Raises:
        ValueError: If the config file has invalid structure

    Example:
        from courtplay.config import get_config
        config = get_config()
        print(f"Transition time: {config.animation_duration}s")
    """
    if not CONFIG_PATH.exists():
        return CourtConfig()
    return load_json(CONFIG_PATH, schema=CourtConfig)


def get_data_path() -> Path:
    """Get the default location of the JSON data file."""
    return Path(get_config().data_path)


def clear_config_cache() -> None:
    """
    Clear the configuration cache.

    Use this if the config file is modified during runtime
    and you need to reload it.
    """
    get_config.cache_clear()
