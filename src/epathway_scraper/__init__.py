"""Barossa Council ePathway development application scraper."""

from importlib import import_module
from typing import Any

__all__ = [
    "DevelopmentApplication",
    "DevelopmentApplicationDatabase",
    "EPathwayRunner",
    "ScraperConfig",
]


def __getattr__(name: str) -> Any:
    if name == "DevelopmentApplication":
        module = import_module(".models", __name__)
        return getattr(module, name)
    elif name == "DevelopmentApplicationDatabase":
        module = import_module(".database", __name__)
        return getattr(module, name)
    elif name == "EPathwayRunner":
        module = import_module(".runner", __name__)
        return getattr(module, name)
    elif name == "ScraperConfig":
        module = import_module(".config", __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)
