from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
import logging

from designer.app.core.exceptions import ConfigValidationError, NotFoundError
from designer.app.models.datasource import ConnectionRequest, DataSource
from designer.app.models.object_def import ObjectDef
from designer.app.services import source_discovery
from designer.app.services.data_access import DataAccessManager, get_access_manager
from designer.app.services.data_config import DataConfigManager, get_config_manager, validate_name
from designer.app.services.interface_utils import add_interface_to_file, remove_interface_from_file

router = APIRouter(prefix="/data", tags=["data"])
logger = logging.getLogger(__name__)


class SaveConfigRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_source: DataSource = Field(alias="dataSource")
    object_def: Optional[ObjectDef] = Field(default=None, alias="object")
    objects: List[ObjectDef] = Field(default_factory=list)
    generate_interface: bool = Field(default=True, alias="generateInterface")


class TableFieldsRequest(BaseModel):
    config: Dict[str, Any]
    table: str


class ApiFieldsRequest(BaseModel):
    config: Dict[str, Any]
    endpoint: str = ""


class FileFieldsRequest(BaseModel):
    config: Dict[str, Any]
    filename: str


class AnalyzeChangesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_name: str = Field(alias="objectName")
    data_source_name: str = Field(alias="dataSourceName")
    new_object: ObjectDef = Field(alias="newObject")


class DeleteObjectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_name: str = Field(alias="objectName")
    data_source_name: str = Field(alias="dataSourceName")
    remove_interface: bool = Field(default=True, alias="removeInterface")


def _fields_response(fields) -> Dict[str, Any]:
    return {"success": True, "fields": [f.model_dump() for f in fields]}


@router.get("/load-configs")
def load_configs(dataSource: Optional[str] = None, manager: DataConfigManager = Depends(get_config_manager)):
    configs = manager.load_data_sources()
    if dataSource:
        objects = manager.load_objects_for_data_source(dataSource)
    else:
        objects = manager.load_object_definitions()

    return {
        "configs": [ds.model_dump(by_alias=True, exclude_none=True) for ds in configs],
        "objects": [obj.model_dump(by_alias=True, exclude_none=True) for obj in objects],
    }


@router.post("/available-sources")
def available_sources(request: ConnectionRequest):
    return {"sources": source_discovery.list_available_sources(request.type, request.config)}


@router.post("/save-config")
def save_config(request: SaveConfigRequest, manager: DataConfigManager = Depends(get_config_manager)):
    objects = list(request.objects)
    if request.object_def is not None:
        objects.insert(0, request.object_def)
    if not objects:
        raise ConfigValidationError("Missing dataSource or object schema")

    # Objects always belong to the data source saved alongside them
    objects = [obj.model_copy(update={"data_source": request.data_source.name}) for obj in objects]

    # Names and definitions are all checked before the first write
    validate_name(request.data_source.name, "data source name")
    errors = []
    for obj in objects:
        errors.extend(manager.validate_object_definition(obj))
    if errors:
        raise ConfigValidationError("Object definition is invalid", details=errors)

    data_source = manager.save_data_source_config(request.data_source)
    saved = [manager.save_object_definition(obj) for obj in objects]

    interfaces = []
    if request.generate_interface:
        interfaces = [add_interface_to_file(obj) for obj in saved]

    return {
        "success": True,
        "message": "Data source and object schema saved successfully",
        "dataSource": data_source.name,
        "objectSchema": saved[0].name,
        "objectSchemas": [obj.name for obj in saved],
        "interfaceGenerated": interfaces,
    }


@router.post("/test-connection")
def test_connection(request: ConnectionRequest):
    return source_discovery.test_connection(request.type, request.config)


@router.post("/table-fields")
def table_fields(request: TableFieldsRequest):
    config = source_discovery.parse_config("mysql", request.config)
    return _fields_response(source_discovery.get_table_fields(config, request.table))


@router.post("/api-fields")
def api_fields(request: ApiFieldsRequest):
    config = source_discovery.parse_config("rest", request.config)
    return _fields_response(source_discovery.get_api_fields(config, request.endpoint))


@router.post("/file-fields")
def file_fields(request: FileFieldsRequest):
    config = source_discovery.parse_config("filesystem", request.config)
    return _fields_response(source_discovery.get_file_fields(config, request.filename))


@router.post("/analyze-changes")
def analyze_changes(request: AnalyzeChangesRequest, manager: DataConfigManager = Depends(get_config_manager)):
    result = manager.get_object_with_changes(request.object_name, request.data_source_name, request.new_object)
    return {
        "isNew": result.is_new,
        "changes": result.changes.model_dump(by_alias=True),
        "hasChanges": result.has_changes,
    }


@router.post("/delete-object")
def delete_object(request: DeleteObjectRequest, manager: DataConfigManager = Depends(get_config_manager)):
    if not manager.delete_object_definition(request.object_name, request.data_source_name):
        raise NotFoundError(f"Object {request.data_source_name}/{request.object_name} not found")

    interface_removed = False
    if request.remove_interface:
        interface_removed = remove_interface_from_file(request.object_name)

    return {"success": True, "interfaceRemoved": interface_removed}


@router.get("/objects/{data_source}/{object_name}")
def read_object_data(
    data_source: str,
    object_name: str,
    manager: DataConfigManager = Depends(get_config_manager),
    access: DataAccessManager = Depends(get_access_manager),
):
    found = manager.get_object_with_data_source(object_name, data_source)
    if found is None:
        raise NotFoundError("Object not found")

    object_def, source = found
    return {
        "object": object_name,
        "dataSource": source.name,
        "data": access.fetch_object_data(object_def, source),
    }


@router.post("/objects/{data_source}/{object_name}")
def create_object_record(
    data_source: str,
    object_name: str,
    record: Dict[str, Any] = Body(...),
    manager: DataConfigManager = Depends(get_config_manager),
    access: DataAccessManager = Depends(get_access_manager),
):
    found = manager.get_object_with_data_source(object_name, data_source)
    if found is None:
        raise NotFoundError("Object not found")

    object_def, source = found
    access.insert_object_data(object_def, source, record)
    logger.info("Inserted %s record into %s", object_name, source.name)
    return {"success": True}
