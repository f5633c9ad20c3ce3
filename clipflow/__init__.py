from __future__ import annotations

from typing import TYPE_CHECKING, Any

# Keep imports lazy so importing a submodule does not pull in the HTTP and ffmpeg stacks.
__all__ = ["ClipflowApp", "Settings", "build_app"]

if TYPE_CHECKING:
    from clipflow.app import ClipflowApp, build_app
    from clipflow.settings import Settings


def __getattr__(name: str) -> Any:
    if name == "Settings":
        from clipflow.settings import Settings

        return Settings
    if name in __all__:
        from clipflow import app as app_module

        return getattr(app_module, name)
    raise AttributeError(f"module 'clipflow' has no attribute '{name}'")
