"""
.env loading for local runs.

Settings that usually live in a developer's .env (GOOGLE_CLOUD_PROJECT,
GEMINI_MODEL, SUBSCOUT_USE_LLM) must be visible before subscout.config reads
them, so infrastructure.settings calls ensure_env_loaded() on import. The
model client calls it again, a no-op unless the loader was reset. Variables
already set in the process environment always win over the file.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

_loaded_from: Path | None = None
_ENV_LOADED = False


def find_env_file(start: Path | None = None) -> Path | None:
    """Nearest .env in `start` (default: the working directory) or any ancestor."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
    return None


def ensure_env_loaded(env_path: Path | None = None) -> Path | None:
    """
    Load the .env file once per process.

    Args:
        env_path: Explicit .env path. If None, searches upward from the
                  working directory, then from this package.

    Returns:
        The file that was loaded, or None when there was none
    """
    global _ENV_LOADED, _loaded_from
    if _ENV_LOADED:
        return _loaded_from

    path = env_path or find_env_file() or find_env_file(Path(__file__).parent)
    if path is not None and path.is_file():
        load_dotenv(path, override=False)
        _loaded_from = path
    _ENV_LOADED = True
    return _loaded_from
