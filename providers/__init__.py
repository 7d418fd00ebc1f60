from __future__ import annotations

from importlib import import_module


def get_provider(name: str):
    """Dynamically import a backend module by name.

    Valid names are "gemini" (official API, needs a key) and "bard" (key-free
    web endpoint). These map directly to modules under `providers.<name>`.
    """
    mod_name = name.strip().lower()
    try:
        return import_module(f"providers.{mod_name}")
    except ImportError as e:
        raise ValueError(f"Unknown provider: {name}") from e


__all__ = ["get_provider"]
