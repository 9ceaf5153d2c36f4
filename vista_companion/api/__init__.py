from vista_companion.api.config import get_api_key, load_config, save_config, store_api_key

__all__ = [
    "load_config",
    "save_config",
    "get_api_key",
    "store_api_key",
]
