# src/sv_app/core/registry.py
from importlib.metadata import entry_points

from fastapi import APIRouter

from sv_app.core.logging import get_logger

EP_GROUP = "sv_app.modules"

logger = get_logger(__name__)


def load_module_routers(group: str = EP_GROUP) -> list[APIRouter]:
    """
    Routers advertised under the `sv_app.modules` entry-point group, sorted
    by entry-point name so route order is stable across installs.
    """
    routers: list[APIRouter] = []
    for ep in sorted(entry_points(group=group), key=lambda e: e.name):
        try:
            router = ep.load()
        except (ImportError, AttributeError) as e:
            logger.error("Could not load module router %r: %s", ep.name, e)
            continue
        if isinstance(router, APIRouter):
            routers.append(router)
        else:
            logger.warning("Entry point %r is not an APIRouter, skipping", ep.name)
    return routers
