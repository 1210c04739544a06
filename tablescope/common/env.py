"""Utilities for loading environment configuration files."""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)


def load_environment() -> Optional[Path]:
    """Load environment variables based on DOTENV_PATH or TABLESCOPE_ENV.

    Precedence:
    1. DOTENV_PATH environment variable (explicit override)
    2. TABLESCOPE_ENV environment variable (loads .env.<name>)
    3. Fallback to .env if present, otherwise .env.dev, then default load.

    Returns:
        Path to the dotenv file that was loaded, or None if nothing matched.
    """
    explicit_path = os.getenv("DOTENV_PATH")
    search_paths = []

    if explicit_path:
        search_paths.append(Path(explicit_path))

    configured_env = os.getenv("TABLESCOPE_ENV")
    if configured_env:
        search_paths.append(Path(f".env.{configured_env}"))

    # Fallbacks (skip duplicates while preserving order)
    for candidate in (Path(".env"), Path(".env.dev")):
        if candidate not in search_paths:
            search_paths.append(candidate)

    loaded_path: Optional[Path] = None
    for path in search_paths:
        if path.exists():
            load_dotenv(dotenv_path=path)
            loaded_path = path
            LOGGER.info("Loaded environment variables from %s", path)
            break

    if loaded_path is None:
        load_dotenv()
        LOGGER.warning(
            "No explicit dotenv file found; relying on default load order."
        )

    env_name = os.getenv("TABLESCOPE_ENV")
    if not env_name and loaded_path and loaded_path.name.startswith(".env."):
        env_name = loaded_path.name.split(".env.", 1)[1]
    os.environ.setdefault("TABLESCOPE_ENV", env_name or "dev")

    return loaded_path
