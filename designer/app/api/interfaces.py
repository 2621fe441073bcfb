from fastapi import APIRouter, Depends
from typing import Optional

from designer.app.core.exceptions import NotFoundError
from designer.app.models.object_def import ObjectDef
from designer.app.services.data_config import DataConfigManager, get_config_manager
from designer.app.services.interface_scanner import group_interfaces_by_file, scan_for_interfaces
from designer.app.services.interface_utils import (
    add_interface_to_file,
    check_interface_exists,
    generate_interface,
    remove_interface_from_file,
)

router = APIRouter(prefix="/interfaces", tags=["interfaces"])


@router.get("/scan")
def scan_interfaces(grouped: bool = False):
    result = scan_for_interfaces()
    body = result.model_dump(by_alias=True, exclude_none=True)
    if grouped:
        body["byFile"] = {
            path: [i.name for i in interfaces]
            for path, interfaces in group_interfaces_by_file(result).items()
        }
    return body


@router.get("/status/{object_name}")
def interface_status(
    object_name: str,
    dataSource: Optional[str] = None,
    manager: DataConfigManager = Depends(get_config_manager),
):
    # With a data source the stored definition tells whether the class is stale
    object_def = manager.load_object_definition(object_name, dataSource) if dataSource else None
    return check_interface_exists(object_name, object_def).model_dump(by_alias=True, exclude_none=True)


@router.post("/generate")
def generate(object_def: ObjectDef):
    interface_name = add_interface_to_file(object_def)
    return {"success": True, "interfaceName": interface_name, "code": generate_interface(object_def)}


@router.delete("/{object_name}")
def remove(object_name: str):
    if not remove_interface_from_file(object_name):
        raise NotFoundError(f"No generated model for {object_name}")
    return {"success": True}
