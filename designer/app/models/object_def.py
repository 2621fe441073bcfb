from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from designer.app.models.datasource import normalize_timestamp

FieldType = Literal["string", "number", "boolean", "date", "array", "object"]

# Attributes compared when deciding whether a field was modified
COMPARED_ATTRIBUTES = ("type", "required", "mapping")


class ObjectField(BaseModel):
    name: str = ""
    type: Optional[FieldType] = None
    required: bool = False
    mapping: str = ""  # source column, JSON key or CSV header


class ObjectDef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    source: str = ""  # table name, API endpoint or file name
    primary_key: str = Field(default="", alias="primaryKey")
    data_source: str = Field(default="", alias="dataSource")
    fields: List[ObjectField] = Field(default_factory=list)
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, value):
        return normalize_timestamp(value)


class FieldModification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    previous: ObjectField
    current: ObjectField
    changed_attributes: List[str] = Field(default_factory=list, alias="changedAttributes")


class FieldChanges(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_fields: List[ObjectField] = Field(default_factory=list, alias="newFields")
    removed_fields: List[ObjectField] = Field(default_factory=list, alias="removedFields")
    modified_fields: List[FieldModification] = Field(default_factory=list, alias="modifiedFields")

    @property
    def has_changes(self) -> bool:
        return bool(self.new_fields or self.removed_fields or self.modified_fields)


class ObjectChanges(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_new: bool = Field(alias="isNew")
    existing_object: Optional[ObjectDef] = Field(default=None, alias="existingObject")
    changes: FieldChanges

    @property
    def has_changes(self) -> bool:
        return self.changes.has_changes
