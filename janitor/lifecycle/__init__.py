"""Mark/Sweep lifecycle."""

from janitor.lifecycle.controller import KindHandler, LifecycleController

__all__ = ["KindHandler", "LifecycleController"]
