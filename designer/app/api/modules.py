from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from designer.app.core.exceptions import NotFoundError
from designer.app.models.routes import MenuItem, PageType, RouteConfig
from designer.app.services.routing import (
    create_default_menu_item,
    get_node_by_path,
    get_siblings,
    initialize_page_config,
    list_paths,
    load_route_config,
    remove_item,
    route_stats,
    save_item,
    save_route_config,
)

router = APIRouter(prefix="/modules", tags=["modules"])


class NewMenuItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    path: str
    parent: Optional[str] = None  # slash-joined names of the parent node
    page_type: Optional[PageType] = Field(default=None, alias="pageType")


class UpdateMenuItem(BaseModel):
    item: MenuItem
    parent: Optional[str] = None
    index: int


@router.get("/")
def read_route_config():
    config = load_route_config()
    body = config.model_dump(by_alias=True, exclude_none=True)
    body["paths"] = list_paths(config.routes)
    return body


@router.post("/")
def write_route_config(config: RouteConfig):
    saved = save_route_config(config)
    return {"success": True, "lastModified": saved.last_modified}


@router.get("/node")
def read_node(path: str):
    node = get_node_by_path(load_route_config().routes, path)
    if node is None:
        raise NotFoundError(f"Route {path} not found")
    return node.model_dump(by_alias=True, exclude_none=True)


@router.get("/stats")
def read_stats():
    return route_stats(load_route_config().routes)


@router.post("/items")
def add_menu_item(item: NewMenuItem):
    menu_item = create_default_menu_item(item.name, item.path)
    if item.page_type:
        initialize_page_config(menu_item, item.page_type)

    config = save_route_config(save_item(load_route_config(), menu_item, item.parent))
    added = get_siblings(config.routes, item.parent)[-1]
    return added.model_dump(by_alias=True, exclude_none=True)


@router.put("/items")
def update_menu_item(request: UpdateMenuItem):
    config = save_route_config(save_item(load_route_config(), request.item, request.parent, request.index))
    updated = get_siblings(config.routes, request.parent)[request.index]
    return updated.model_dump(by_alias=True, exclude_none=True)


@router.delete("/items")
def delete_menu_item(index: int, parent: Optional[str] = None):
    config = save_route_config(remove_item(load_route_config(), parent, index))
    return {"success": True, "lastModified": config.last_modified}
