import copy
import json
import logging
import os
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional, get_args

from designer.app.core.config import settings
from designer.app.core.exceptions import NotFoundError
from designer.app.models.routes import MenuItem, PageConfig, PageType, RouteConfig
from designer.app.services.data_config import utc_now

logger = logging.getLogger(__name__)

PAGE_TYPES = get_args(PageType)

# Reported by get_object_ref_usage for pages not bound to an ObjectDef
NO_OBJECT = "No object"

PAGE_CONFIG_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "listing": {"pageSize": 20, "columns": [], "filters": []},
    "form": {"layout": "single", "sections": []},
    "link": {"targetType": "route", "openInNewTab": False, "target": ""},
    "dashboard": {"widgets": []},
}


def list_paths(routes: List[MenuItem], base: str = "") -> List[str]:
    """Slash-joined names of visible nodes, depth first, siblings in ``order``."""
    paths = []
    for route in sorted(routes, key=lambda r: r.order):
        if not route.visible:
            continue
        full_path = f"{base}/{route.name}" if base else route.name
        paths.append(full_path)
        paths.extend(list_paths(route.children, full_path))
    return paths


def get_node_by_path(routes: List[MenuItem], path: str) -> Optional[MenuItem]:
    nodes = routes
    found = None
    for part in path.strip("/").split("/"):
        found = next((r for r in nodes if r.name == part), None)
        if found is None:
            return None
        nodes = found.children
    return found


def get_siblings(routes: List[MenuItem], parent_path: Optional[str] = None) -> List[MenuItem]:
    """Top-level routes, or the children of the node at ``parent_path``."""
    if not parent_path:
        return routes
    parent = get_node_by_path(routes, parent_path)
    if parent is None:
        raise NotFoundError(f"Route {parent_path} not found")
    return parent.children


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def initialize_page_config(item: MenuItem, page_type: str) -> MenuItem:
    """Switch an item to ``page_type`` and fill the settings that type expects."""
    page = item.page_config
    page.type = page_type
    page.title = item.name
    if not page.component_path:
        page.component_path = f"components/pages/{item.name or 'Page'}"

    if page.config.get("props") is None:
        page.config["props"] = {}
    for key, value in PAGE_CONFIG_DEFAULTS.get(page_type, {}).items():
        if page.config.get(key) is None:
            page.config[key] = copy.deepcopy(value)
    return item


def create_default_menu_item(name: str, path: str) -> MenuItem:
    now = utc_now()
    item = MenuItem(
        id=generate_id(),
        name=name,
        path=path,
        icon="file",
        order=0,
        visible=True,
        page_config=PageConfig(type="component", title=name),
        created_at=now,
        updated_at=now,
    )
    return initialize_page_config(item, "component")


def save_item(
    config: RouteConfig,
    item: MenuItem,
    parent_path: Optional[str] = None,
    index: Optional[int] = None,
) -> RouteConfig:
    """Append ``item`` under ``parent_path``, or replace the sibling at ``index``."""
    updated = config.model_copy(deep=True)
    siblings = get_siblings(updated.routes, parent_path)
    now = utc_now()
    saved_item = item.model_copy(deep=True, update={"updated_at": now})

    if index is None:
        saved_item.order = len(siblings)
        siblings.append(saved_item)
    elif 0 <= index < len(siblings):
        siblings[index] = saved_item
    else:
        raise NotFoundError(f"No route at index {index} under {parent_path or '/'}")

    updated.last_modified = now
    return updated


def remove_item(config: RouteConfig, parent_path: Optional[str], index: int) -> RouteConfig:
    """Drop the sibling at ``index`` and renumber the rest."""
    updated = config.model_copy(deep=True)
    siblings = get_siblings(updated.routes, parent_path)
    if not 0 <= index < len(siblings):
        raise NotFoundError(f"No route at index {index} under {parent_path or '/'}")

    now = utc_now()
    removed = siblings.pop(index)
    for order, sibling in enumerate(siblings):
        sibling.order = order
        sibling.updated_at = now
    updated.last_modified = now
    logger.info("Removed route %s", removed.name)
    return updated


def _walk(routes: List[MenuItem]):
    for route in routes:
        yield route
        yield from _walk(route.children)


def count_visible_routes(routes: List[MenuItem]) -> int:
    return sum(1 for route in _walk(routes) if route.visible)


def count_by_type(routes: List[MenuItem], page_type: str) -> int:
    return sum(1 for route in _walk(routes) if route.page_config.type == page_type)


def get_object_ref_usage(routes: List[MenuItem]) -> List[Dict[str, Any]]:
    """How many pages use each ObjectDef, most used first."""
    usage = Counter(route.page_config.object_ref or NO_OBJECT for route in _walk(routes))
    return [{"object": name, "count": count} for name, count in usage.most_common()]


def route_stats(routes: List[MenuItem]) -> Dict[str, Any]:
    return {
        "total": sum(1 for _ in _walk(routes)),
        "visible": count_visible_routes(routes),
        "byType": {page_type: count_by_type(routes, page_type) for page_type in PAGE_TYPES},
        "objectRefUsage": get_object_ref_usage(routes),
    }


def load_route_config(path: Optional[str] = None) -> RouteConfig:
    path = path or settings.ROUTING_FILE
    if not os.path.exists(path):
        return RouteConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            return RouteConfig.model_validate(json.load(f))
    except (OSError, ValueError) as e:  # includes pydantic ValidationError
        logger.error("Error loading route config %s: %s", path, e)
        return RouteConfig()


def save_route_config(config: RouteConfig, path: Optional[str] = None) -> RouteConfig:
    path = path or settings.ROUTING_FILE
    saved = config.model_copy(update={"last_modified": utc_now()})
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(saved.model_dump(by_alias=True, exclude_none=True), f, indent=2)
    logger.info("Saved route config with %d top-level routes to %s", len(saved.routes), path)
    return saved
