"""
YAML-backed store for data-source connections and object definitions.

Layout under the data-definition directory::

    _access.yaml                  {dataSources: [...]}
    <dataSource>/<object>.yaml    one object definition, keyed by file name

Nothing is cached: every call reads the files again, and the last write wins.
Unreadable or malformed YAML is logged and treated as absent.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from designer.app.core.config import settings
from designer.app.core.exceptions import InvalidNameError
from designer.app.models.datasource import DataSource
from designer.app.models.object_def import (
    COMPARED_ATTRIBUTES,
    FieldChanges,
    FieldModification,
    ObjectChanges,
    ObjectDef,
    ObjectField,
)

logger = logging.getLogger(__name__)

ACCESS_FILE = "_access.yaml"
YAML_SUFFIX = ".yaml"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_name(name: str, kind: str = "name") -> str:
    if not name or not name.strip():
        raise InvalidNameError(f"{kind} is required")
    if "/" in name or "\\" in name or name.startswith((".", "_")):
        raise InvalidNameError(f"Invalid {kind}: {name!r}")
    return name


def _name_errors(name: str, kind: str) -> List[str]:
    try:
        validate_name(name, kind)
    except InvalidNameError as e:
        return [e.message]
    return []


def diff_fields(old_fields: List[ObjectField], new_fields: List[ObjectField]) -> FieldChanges:
    """Partition fields into new, removed and modified, matching on name."""
    old_by_name = {f.name: f for f in old_fields}
    new_names = {f.name for f in new_fields}

    changes = FieldChanges()
    for field in new_fields:
        previous = old_by_name.get(field.name)
        if previous is None:
            changes.new_fields.append(field)
            continue
        changed = [attr for attr in COMPARED_ATTRIBUTES if getattr(previous, attr) != getattr(field, attr)]
        if changed:
            changes.modified_fields.append(
                FieldModification(name=field.name, previous=previous, current=field, changed_attributes=changed)
            )

    changes.removed_fields = [f for f in old_fields if f.name not in new_names]
    return changes


class DataConfigManager:
    def __init__(self, base_path: Optional[str] = None):
        self.base_path = base_path or settings.DATADEF_DIR

    @property
    def access_path(self) -> str:
        return os.path.join(self.base_path, ACCESS_FILE)

    def object_path(self, name: str, data_source: str) -> str:
        validate_name(data_source, "data source name")
        validate_name(name, "object name")
        return os.path.join(self.base_path, data_source, f"{name}{YAML_SUFFIX}")

    def _read_yaml(self, path: str) -> Any:
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Error loading %s: %s", path, e)
            return None

    def _write_yaml(self, path: str, data: Any) -> None:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)

    # Data sources

    def _raw_data_sources(self) -> List[dict]:
        data = self._read_yaml(self.access_path)
        if not isinstance(data, dict):
            if data is not None:
                logger.error("Ignoring %s: expected a mapping with 'dataSources'", self.access_path)
            return []
        entries = data.get("dataSources") or []
        if not isinstance(entries, list):
            logger.error("Ignoring %s: 'dataSources' is not a list", self.access_path)
            return []
        return [e for e in entries if isinstance(e, dict)]

    def load_data_sources(self) -> List[DataSource]:
        """Load all data source configurations; invalid entries are skipped."""
        sources = []
        for entry in self._raw_data_sources():
            try:
                sources.append(DataSource.model_validate(entry))
            except ValidationError as e:
                logger.error("Skipping invalid data source %r: %s", entry.get("name"), e)
        return sources

    def load_data_source(self, name: str) -> Optional[DataSource]:
        return next((ds for ds in self.load_data_sources() if ds.name == name), None)

    def save_data_source_config(self, data_source: DataSource) -> DataSource:
        """Insert or replace a data source by name, keeping its creation time."""
        validate_name(data_source.name, "data source name")
        entries = self._raw_data_sources()
        now = utc_now()

        index = next((i for i, e in enumerate(entries) if e.get("name") == data_source.name), None)
        created_at = data_source.created_at or now
        if index is not None and entries[index].get("createdAt"):
            created_at = str(entries[index]["createdAt"])

        saved = data_source.model_copy(update={"created_at": created_at, "updated_at": now})
        payload = saved.model_dump(by_alias=True, exclude_none=True)
        if index is None:
            entries.append(payload)
        else:
            entries[index] = payload

        self._write_yaml(self.access_path, {"dataSources": entries})
        logger.info("Saved data source %s (%s)", saved.name, saved.type)
        return saved

    def delete_data_source(self, name: str) -> bool:
        entries = self._raw_data_sources()
        remaining = [e for e in entries if e.get("name") != name]
        if len(remaining) == len(entries):
            return False
        self._write_yaml(self.access_path, {"dataSources": remaining})
        logger.info("Deleted data source %s", name)
        return True

    # Object definitions

    def load_object_definition(self, name: str, data_source: str) -> Optional[ObjectDef]:
        path = self.object_path(name, data_source)
        data = self._read_yaml(path)
        if not isinstance(data, dict):
            if data is not None:
                logger.error("Ignoring %s: expected a mapping", path)
            return None

        data["name"] = name
        data.setdefault("dataSource", data_source)
        try:
            return ObjectDef.model_validate(data)
        except ValidationError as e:
            logger.error("Error loading object definition %s/%s: %s", data_source, name, e)
            return None

    def load_objects_for_data_source(self, data_source: str) -> List[ObjectDef]:
        directory = os.path.join(self.base_path, validate_name(data_source, "data source name"))
        if not os.path.isdir(directory):
            return []

        objects = []
        for file in sorted(os.listdir(directory)):
            if not file.endswith(YAML_SUFFIX) or file.startswith(("_", ".")):
                continue
            obj = self.load_object_definition(file[: -len(YAML_SUFFIX)], data_source)
            if obj is not None:
                objects.append(obj)
        return objects

    def load_object_definitions(self) -> List[ObjectDef]:
        if not os.path.isdir(self.base_path):
            return []

        objects = []
        for entry in sorted(os.listdir(self.base_path)):
            if entry.startswith(("_", ".")) or not os.path.isdir(os.path.join(self.base_path, entry)):
                continue
            objects.extend(self.load_objects_for_data_source(entry))
        return objects

    def save_object_definition(self, object_def: ObjectDef) -> ObjectDef:
        """Write an object definition and return exactly what a later load yields."""
        path = self.object_path(object_def.name, object_def.data_source)
        existing = self.load_object_definition(object_def.name, object_def.data_source)
        now = utc_now()

        created_at = object_def.created_at or now
        if existing is not None and existing.created_at:
            created_at = existing.created_at

        saved = object_def.model_copy(update={"created_at": created_at, "updated_at": now})
        self._write_yaml(path, saved.model_dump(by_alias=True, exclude={"name"}, exclude_none=True))
        logger.info("Saved object definition %s/%s", saved.data_source, saved.name)
        return saved

    def delete_object_definition(self, name: str, data_source: str) -> bool:
        path = self.object_path(name, data_source)
        if not os.path.exists(path):
            return False
        os.remove(path)
        logger.info("Deleted object definition %s/%s", data_source, name)
        return True

    def object_exists(self, name: str, data_source: str) -> bool:
        return os.path.exists(self.object_path(name, data_source))

    def get_available_objects(self, data_source: Optional[str] = None) -> List[str]:
        if data_source:
            return [obj.name for obj in self.load_objects_for_data_source(data_source)]
        return [obj.name for obj in self.load_object_definitions()]

    def get_object_with_data_source(self, name: str, data_source: str) -> Optional[Tuple[ObjectDef, DataSource]]:
        obj = self.load_object_definition(name, data_source)
        if obj is None:
            return None
        source = self.load_data_source(obj.data_source)
        if source is None:
            return None
        return obj, source

    def validate_object_definition(self, object_def: ObjectDef) -> List[str]:
        errors = []
        if not object_def.name:
            errors.append("Object name is required")
        else:
            errors.extend(_name_errors(object_def.name, "object name"))
        if not object_def.source:
            errors.append("Source is required")
        if not object_def.data_source:
            errors.append("Data source is required")
        else:
            errors.extend(_name_errors(object_def.data_source, "data source name"))
        if not object_def.fields:
            errors.append("At least one field is required")

        for index, field in enumerate(object_def.fields, start=1):
            if not field.name:
                errors.append(f"Field {index}: name is required")
            if not field.type:
                errors.append(f"Field {index}: type is required")
            if not field.mapping:
                errors.append(f"Field {index}: mapping is required")
        return errors

    def get_object_with_changes(self, object_name: str, data_source_name: str, new_object: ObjectDef) -> ObjectChanges:
        """Compare the stored definition with a proposed one before it is saved."""
        existing = self.load_object_definition(object_name, data_source_name)
        if existing is None:
            return ObjectChanges(is_new=True, changes=FieldChanges(new_fields=list(new_object.fields)))
        return ObjectChanges(
            is_new=False,
            existing_object=existing,
            changes=diff_fields(existing.fields, new_object.fields),
        )


def get_config_manager() -> DataConfigManager:
    return DataConfigManager(settings.DATADEF_DIR)
