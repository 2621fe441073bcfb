from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class InterfaceStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exists: bool
    interface_name: str = Field(alias="interfaceName")
    needs_update: Optional[bool] = Field(default=None, alias="needsUpdate")


class InterfaceInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    file: str
    relative_path: str = Field(alias="relativePath")
    source: str  # the class definition as written in the file
    fields: List[str] = Field(default_factory=list)


class InterfaceScanResult(BaseModel):
    interfaces: List[InterfaceInfo] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list)
    error: Optional[str] = None
