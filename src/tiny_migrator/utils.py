"""Utility functions for tiny-migrator."""

import importlib
import os
from pathlib import Path
from typing import Any


def expand_path(path: str | Path) -> Path:
    """
    Expand ~ and environment variables in a path.

    Args:
        path: Path string or Path object

    Returns:
        Absolute expanded Path
    """
    return Path(os.path.expandvars(os.path.expanduser(str(path)))).resolve()


def ensure_dir(path: Path) -> Path:
    """
    Create directory (and parents) if it doesn't exist.

    Args:
        path: Directory path

    Returns:
        The same path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def import_object(target: str) -> Any:
    """
    Import an object given as "package.module:attribute".

    Args:
        target: Import target, attribute may be dotted (e.g. "app.db:Migrations.ALL")

    Returns:
        The resolved object

    Raises:
        ValueError: If target is malformed
        ImportError: If the module cannot be imported
        AttributeError: If the attribute does not exist
    """
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Invalid target '{target}', expected 'package.module:attribute'")

    obj: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        obj = getattr(obj, attr)
    return obj
