"""
Uniform read/write facade over MySQL, REST and filesystem data sources.

Raw rows are mapped onto an object definition field by field, each value
coerced to the field's declared type.
"""

import base64
import json
import logging
import math
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from designer.app.core.config import settings
from designer.app.core.exceptions import (
    ConfigValidationError,
    MissingFieldError,
    SourceQueryError,
    UnsupportedSourceError,
)
from designer.app.models.datasource import DataSource, FileSystemConfig, MySQLConfig, RestConfig
from designer.app.models.object_def import ObjectDef

logger = logging.getLogger(__name__)

TRUE_STRINGS = {"true", "1", "yes", "on"}
FALSE_STRINGS = {"false", "0", "no", "off", ""}

FILE_EXTENSIONS = {"json": (".json",), "csv": (".csv",)}


def mysql_url(config: MySQLConfig) -> URL:
    return URL.create(
        "mysql+pymysql",
        username=config.username,
        password=config.password,
        host=config.server,
        port=config.port,
        database=config.database,
    )


def create_mysql_engine(config: MySQLConfig):
    # One engine per request, no pooling: the connection closes on dispose()
    return create_engine(
        mysql_url(config),
        poolclass=NullPool,
        connect_args={"connect_timeout": settings.MYSQL_CONNECT_TIMEOUT},
    )


def quote_ident(name: str) -> str:
    if not name or "`" in name:
        raise ConfigValidationError(f"Invalid identifier: {name!r}")
    return f"`{name}`"


def join_url(base_url: str, endpoint: str) -> str:
    """Join base URL and endpoint, collapsing duplicate slashes outside the scheme."""
    return re.sub(r"(?<!:)/{2,}", "/", f"{base_url}/{endpoint}")


def build_auth_headers(config: RestConfig) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}

    if config.authentication == "apikey" and config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    elif config.authentication == "basic" and config.username and config.password:
        token = base64.b64encode(f"{config.username}:{config.password}".encode("utf-8")).decode("ascii")
        headers["Authorization"] = f"Basic {token}"

    return headers


def resolve_base_path(config: FileSystemConfig) -> str:
    return os.path.join(settings.FILESYSTEM_ROOT, config.base_path)


def resolve_source_file(config: FileSystemConfig, filename: str) -> str:
    base = os.path.realpath(resolve_base_path(config))
    path = os.path.realpath(os.path.join(base, filename))
    if os.path.commonpath([base, path]) != base:
        raise ConfigValidationError(f"File {filename!r} is outside the data source base path")
    return path


def read_source_file(path: str, fmt: str) -> Any:
    if fmt == "json":
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    if fmt == "csv":
        # cells stay text; convert_value applies the field types
        df = pd.read_csv(path, dtype=str, keep_default_na=True)
        df = df.astype(object).where(pd.notnull(df), None)
        return df.to_dict(orient="records")
    raise UnsupportedSourceError(f"Unsupported file format: {fmt}")


def _to_number(value: Any):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None

    text_value = str(value).strip()
    if "_" in text_value:
        return None
    try:
        return int(text_value)
    except ValueError:
        pass
    try:
        number = float(text_value)
    except (ValueError, OverflowError):
        return None
    # nan and inf are not representable in a JSON response
    return number if math.isfinite(number) else None


def _to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return bool(value)


def _to_date(value: Any):
    """Parse a date; values that cannot be read as one become ``None``."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # numeric dates are epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    text_value = str(value).strip()
    if text_value.endswith("Z"):
        text_value = text_value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text_value)
    except ValueError:
        pass
    try:
        parsed = pd.to_datetime(text_value, errors="coerce")
    except (ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def convert_value(value: Any, target_type: Optional[str]) -> Any:
    """Coerce a raw source value to a field type.

    ``None`` passes through, and a value that cannot be read as the target
    type becomes ``None`` rather than failing the whole record.
    """
    if value is None:
        return None

    if target_type == "string":
        return str(value)
    if target_type == "number":
        return _to_number(value)
    if target_type == "boolean":
        return _to_boolean(value)
    if target_type == "date":
        return _to_date(value)
    if target_type == "array":
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]
    if target_type == "object":
        if isinstance(value, (dict, list)):
            return value
        try:
            return json.loads(str(value))
        except ValueError:
            return None
    return value


class DataAccessManager:
    def _require(self, data_source: DataSource, source_type: str):
        if data_source.type != source_type:
            raise UnsupportedSourceError(f"Data source {data_source.name!r} is not {source_type}")
        return data_source.config

    def query_mysql(self, data_source: DataSource, query: str, params: Optional[Dict[str, Any]] = None) -> List[dict]:
        """Run a parameterized statement (``:name`` placeholders) on its own connection."""
        config = self._require(data_source, "mysql")
        engine = create_mysql_engine(config)
        try:
            with engine.begin() as conn:
                result = conn.execute(text(query), params or {})
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            logger.error("MySQL query on %s failed: %s", data_source.name, e)
            raise SourceQueryError(f"MySQL query failed: {e}") from e
        finally:
            engine.dispose()

    def query_rest(self, data_source: DataSource, endpoint: str, method: str = "GET", payload: Any = None) -> Any:
        config = self._require(data_source, "rest")
        url = join_url(config.base_url, endpoint)
        try:
            response = requests.request(
                method,
                url,
                headers=build_auth_headers(config),
                json=payload,
                timeout=settings.REST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("REST request %s %s failed: %s", method, url, e)
            raise SourceQueryError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise SourceQueryError(f"HTTP {response.status_code}: {response.reason}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SourceQueryError(f"Invalid JSON from {url}") from e

    def query_filesystem(self, data_source: DataSource, filename: str) -> Any:
        config = self._require(data_source, "filesystem")
        path = resolve_source_file(config, filename)
        try:
            return read_source_file(path, config.format)
        except (OSError, ValueError) as e:
            raise SourceQueryError(f"Error reading file {filename}: {e}") from e

    def fetch_object_data(self, object_def: ObjectDef, data_source: DataSource) -> Any:
        if data_source.type == "mysql":
            raw = self.query_mysql(data_source, f"SELECT * FROM {quote_ident(object_def.source)}")
        elif data_source.type == "rest":
            raw = self.query_rest(data_source, object_def.source)
        elif data_source.type == "filesystem":
            raw = self.query_filesystem(data_source, object_def.source)
        else:
            raise UnsupportedSourceError(f"Unsupported data source type: {data_source.type}")
        return self.map_data_to_object(raw, object_def)

    def insert_object_data(self, object_def: ObjectDef, data_source: DataSource, record: Dict[str, Any]) -> Any:
        """Write one record, translating object field names back to source mappings."""
        missing = [
            f"Field '{field.name}' is required"
            for field in object_def.fields
            if field.required and record.get(field.name) is None
        ]
        if missing:
            raise ConfigValidationError("Validation failed", details=missing)

        source_data = {
            field.mapping: record[field.name] for field in object_def.fields if field.name in record
        }

        if data_source.type == "mysql":
            columns = list(source_data)
            placeholders = ", ".join(f":p{i}" for i in range(len(columns)))
            query = "INSERT INTO {} ({}) VALUES ({})".format(
                quote_ident(object_def.source),
                ", ".join(quote_ident(c) for c in columns),
                placeholders,
            )
            params = {f"p{i}": source_data[c] for i, c in enumerate(columns)}
            return self.query_mysql(data_source, query, params)
        if data_source.type == "rest":
            return self.query_rest(data_source, object_def.source, method="POST", payload=source_data)
        raise UnsupportedSourceError(f"Data source type {data_source.type!r} is read-only")

    def map_data_to_object(self, raw_data: Any, object_def: ObjectDef) -> Any:
        if isinstance(raw_data, list):
            return [self._map_single_item(item, object_def) for item in raw_data]
        return self._map_single_item(raw_data, object_def)

    def _map_single_item(self, item: Any, object_def: ObjectDef) -> Dict[str, Any]:
        if not isinstance(item, dict):
            raise SourceQueryError(f"Expected an object record, got {type(item).__name__}")

        mapped = {}
        for field in object_def.fields:
            if field.mapping in item:
                mapped[field.name] = convert_value(item[field.mapping], field.type)
            elif field.required:
                raise MissingFieldError(field.name)
        return mapped


def get_access_manager() -> DataAccessManager:
    return DataAccessManager()
