from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

PageType = Literal["listing", "dashboard", "form", "component", "link"]


class PageConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: PageType = "component"
    title: Optional[str] = None
    description: Optional[str] = None
    component_path: Optional[str] = Field(default=None, alias="componentPath")
    object_ref: Optional[str] = Field(default=None, alias="objectRef")  # ObjectDef name for data-driven pages
    config: Dict[str, Any] = Field(default_factory=dict)


class MenuItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    path: str
    icon: str = ""
    order: int = 0
    visible: bool = True
    page_config: PageConfig = Field(default_factory=PageConfig, alias="pageConfig")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    children: List["MenuItem"] = Field(default_factory=list)


MenuItem.model_rebuild()


class RouteConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = "1.0"
    last_modified: Optional[str] = Field(default=None, alias="lastModified")
    routes: List[MenuItem] = Field(default_factory=list)
