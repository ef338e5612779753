"""Resolve ``"module:attribute"`` import strings to App instances."""

import importlib

from switchyard.app import App


def resolve_app(import_string: str) -> App:
    """Import *import_string* and return the App it names.

    The attribute defaults to ``app`` (``"myapp"`` means ``myapp:app``).
    A callable that is not an App is treated as a factory and called
    with no arguments.

    Raises ``ModuleNotFoundError`` or ``AttributeError`` when the target
    does not exist, and ``TypeError`` when it is not (and does not
    build) an App.
    """
    module_path, _, attr_name = import_string.partition(":")
    target = getattr(importlib.import_module(module_path), attr_name or "app")

    if not isinstance(target, App) and callable(target):
        try:
            target = target()
        except Exception as exc:
            msg = f"App factory {import_string!r} failed: {exc}"
            raise TypeError(msg) from exc

    if isinstance(target, App):
        return target
    msg = f"{import_string!r} resolved to {type(target).__name__}, not a switchyard.App instance"
    raise TypeError(msg)
