from datetime import datetime
from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

SourceType = Literal["mysql", "rest", "filesystem"]


class MySQLConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server: str
    port: int = 3306
    username: str
    password: str = ""
    database: str


class RestConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(alias="baseUrl")
    authentication: Literal["none", "apikey", "basic"] = "none"
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    username: Optional[str] = None
    password: Optional[str] = None


class FileSystemConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_path: str = Field(alias="basePath")
    format: Literal["json", "csv"] = "json"


def normalize_timestamp(value):
    # hand-edited YAML may carry unquoted timestamps, which load as datetime
    if isinstance(value, datetime):
        return value.isoformat()
    return value


SourceConfig = Union[MySQLConfig, RestConfig, FileSystemConfig]

CONFIG_MODELS = {
    "mysql": MySQLConfig,
    "rest": RestConfig,
    "filesystem": FileSystemConfig,
}


def parse_source_config(source_type: str, config):
    """Validate a raw config dict against the model for ``source_type``."""
    model = CONFIG_MODELS.get(source_type)
    if model is None or isinstance(config, model):
        return config
    return model.model_validate(config or {})


class DataSource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: SourceType
    config: SourceConfig
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @field_validator("config", mode="before")
    @classmethod
    def _config_for_type(cls, value, info: ValidationInfo):
        return parse_source_config(info.data.get("type"), value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, value):
        return normalize_timestamp(value)


class ConnectionRequest(BaseModel):
    """Body of the discovery endpoints: a source type and its raw config."""

    type: str
    config: dict = Field(default_factory=dict)
