"""Environment helper utilities.

Loads the project ``.env`` (next to ``pyproject.toml``) so settings such as
``OPENAI_API_KEY`` or ``LOGISTICS_AI_TIMEOUT_SECONDS`` are visible to
``config.config.load_estimator_config``.
"""

from pathlib import Path

from dotenv import load_dotenv

__all__ = ["find_project_root", "load_project_dotenv"]

_MAX_PARENT_LEVELS = 10


def find_project_root(start: Path | None = None) -> Path:
    """Walk upwards until a directory containing `pyproject.toml` is found."""
    current = start or Path(__file__).resolve().parent
    for _ in range(_MAX_PARENT_LEVELS):
        if (current / "pyproject.toml").exists():
            return current
        if current.parent == current:
            break
        current = current.parent
    return Path(__file__).resolve().parent


def load_project_dotenv(start: Path | None = None) -> bool:
    """Load the project-level `.env` if present. Existing variables win."""
    dotenv_path = find_project_root(start) / ".env"
    if not dotenv_path.exists():
        return False
    return load_dotenv(dotenv_path=dotenv_path, override=False)
