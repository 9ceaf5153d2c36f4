"""Vista configuration and Keychain helpers.

Shared by the HTTP server, the bridge provider, the LLM clients and the CLI.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".vista" / "config.json"
KEYCHAIN_SERVICE = "vista-companion"

DEFAULTS: Dict[str, Any] = {
    "assistant_name": "Vista",
    "session_dir": ".vista_session",
    "client_factory": "",
    "whatsapp_service_url": "",
    "poll_attempts": 20,
    "poll_interval": 1.0,
    "recreate_poll_attempts": 10,
    "reconnect_delay": 3.0,
    "auto_connect_delay": 2.0,
    "providers": ["groq", "gemini", "claude"],
    "models": {
        "groq": "llama-3.1-8b-instant",
        "gemini": "gemini-2.0-flash",
        "claude": "claude-haiku-4-5-20251001",
    },
}

# Environment variables that win over the config file.
ENV_OVERRIDES = {
    "WHATSAPP_SERVICE_URL": "whatsapp_service_url",
    "VISTA_CLIENT_FACTORY": "client_factory",
    "VISTA_SESSION_DIR": "session_dir",
}


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from disk over the defaults, then apply env overrides."""
    path = path or DEFAULT_CONFIG_PATH
    config = json.loads(json.dumps(DEFAULTS))

    if path.exists():
        try:
            stored = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", path, exc)
        else:
            models = stored.pop("models", None)
            config.update(stored)
            if isinstance(models, dict):
                config["models"].update(models)

    for env_var, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: Optional[Path] = None):
    """Save config to disk."""
    path = path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2))


def get_api_key(env_var: str, keychain_account: str) -> Optional[str]:
    """Load an API key from the environment or macOS Keychain.

    Checks the env var first, then Keychain (set via `vista set-key`).
    """
    key = os.environ.get(env_var)
    if key:
        return key

    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-a", keychain_account, "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True, text=True,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except FileNotFoundError:
        pass

    return None


def store_api_key(account: str, key: str) -> bool:
    """Store an API key in macOS Keychain, replacing any previous one."""
    subprocess.run(
        ["security", "delete-generic-password", "-a", account, "-s", KEYCHAIN_SERVICE],
        capture_output=True,
    )
    result = subprocess.run(
        ["security", "add-generic-password", "-a", account, "-s", KEYCHAIN_SERVICE, "-w", key],
        capture_output=True, text=True,
    )
    if result.returncode != 0:
        logger.error("Keychain write failed: %s", result.stderr.strip())
    return result.returncode == 0
