"""Connection tests and field discovery behind the designer wizard."""

import logging
import os
import re
from datetime import datetime
from typing import Any, Dict, List

import requests
from pydantic import ValidationError
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from designer.app.core.config import settings
from designer.app.core.exceptions import ConfigValidationError, SourceQueryError, UnsupportedSourceError, redact_secrets
from designer.app.models.datasource import CONFIG_MODELS, FileSystemConfig, MySQLConfig, RestConfig
from designer.app.models.object_def import ObjectField
from designer.app.services.data_access import (
    FILE_EXTENSIONS,
    build_auth_headers,
    create_mysql_engine,
    join_url,
    read_source_file,
    resolve_base_path,
    resolve_source_file,
)

logger = logging.getLogger(__name__)

# Offered when a REST API does not list its own endpoints
COMMON_REST_ENDPOINTS = [
    "users",
    "products",
    "orders",
    "categories",
    "customers",
    "items",
    "transactions",
    "accounts",
]

INTEGER_TYPE = re.compile(r"(tiny|small|medium|big)?int(eger)?\b")
# Numbers as written in CSV cells; a leading zero marks a code, not a number
NUMERIC_TEXT = re.compile(r"-?(0|[1-9]\d*)(\.\d+)?")


def parse_config(source_type: str, config: Dict[str, Any]):
    model = CONFIG_MODELS.get((source_type or "").lower())
    if model is None:
        raise UnsupportedSourceError(f"Unsupported data source type: {source_type}")
    try:
        return model.model_validate(config or {})
    except ValidationError as e:
        details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigValidationError(f"Invalid {source_type} configuration", details=details) from e


def map_mysql_type(sql_type: str) -> str:
    t = str(sql_type).lower()
    if t.startswith(("tinyint(1)", "bool", "bit")):
        return "boolean"
    if INTEGER_TYPE.match(t) or t.startswith(("decimal", "numeric", "float", "double", "real")):
        return "number"
    if any(k in t for k in ("date", "time", "year")):
        return "date"
    if "json" in t:
        return "object"
    return "string"


def _looks_like_date(value: str) -> bool:
    candidate = value.strip()
    if len(candidate) < 8 or not candidate[:4].isdigit():
        return False
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        datetime.fromisoformat(candidate)
    except ValueError:
        return False
    return True


def infer_type(value: Any) -> str:
    if value is None:
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, datetime) or (isinstance(value, str) and _looks_like_date(value)):
        return "date"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def infer_text_type(value: Any) -> str:
    """Type of a cell read as text, as from a CSV file."""
    if not isinstance(value, str):
        return infer_type(value)
    candidate = value.strip()
    if candidate.lower() in ("true", "false"):
        return "boolean"
    if NUMERIC_TEXT.fullmatch(candidate):
        return "number"
    return infer_type(candidate)


def infer_fields_from_data(data: Any, text_cells: bool = False) -> List[ObjectField]:
    """Build optional fields from the first record of a sample payload."""
    sample = data[0] if isinstance(data, list) and data else data
    if not isinstance(sample, dict):
        return []
    infer = infer_text_type if text_cells else infer_type
    return [
        ObjectField(name=key, type=infer(value), required=False, mapping=key)
        for key, value in sample.items()
    ]


# MySQL

def list_mysql_tables(config: MySQLConfig) -> List[str]:
    engine = create_mysql_engine(config)
    try:
        return inspect(engine).get_table_names()
    except SQLAlchemyError as e:
        raise SourceQueryError(f"Failed to fetch tables: {e}") from e
    finally:
        engine.dispose()


def get_table_fields(config: MySQLConfig, table: str) -> List[ObjectField]:
    engine = create_mysql_engine(config)
    try:
        columns = inspect(engine).get_columns(table)
    except SQLAlchemyError as e:
        raise SourceQueryError(f"Failed to describe table {table}: {e}") from e
    finally:
        engine.dispose()

    return [
        ObjectField(
            name=col["name"],
            type=map_mysql_type(col["type"]),
            required=not col.get("nullable", True),
            mapping=col["name"],
        )
        for col in columns
    ]


def test_mysql_connection(config: MySQLConfig) -> Dict[str, Any]:
    engine = create_mysql_engine(config)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        tables = inspect(engine).get_table_names()
    except SQLAlchemyError as e:
        logger.warning("MySQL connection to %s@%s failed: %s", config.database, config.server, redact_secrets(str(e)))
        return {"success": False, "message": redact_secrets(f"Connection failed: {e}")}
    finally:
        engine.dispose()

    return {
        "success": True,
        "message": f"Connected successfully to database: {config.database}",
        "schema": tables,
    }


# REST

def list_rest_endpoints(config: RestConfig) -> List[str]:
    try:
        response = requests.get(
            join_url(config.base_url, ""),
            headers=build_auth_headers(config),
            timeout=settings.REST_TIMEOUT,
        )
        if response.ok:
            data = response.json()
            if isinstance(data, dict) and isinstance(data.get("endpoints"), list):
                return [str(e) for e in data["endpoints"]]
    except (requests.RequestException, ValueError) as e:
        logger.info("Could not auto-discover REST endpoints at %s: %s", config.base_url, e)
    return list(COMMON_REST_ENDPOINTS)


def get_api_fields(config: RestConfig, endpoint: str) -> List[ObjectField]:
    url = join_url(config.base_url, endpoint)
    try:
        response = requests.get(url, headers=build_auth_headers(config), timeout=settings.REST_TIMEOUT)
    except requests.RequestException as e:
        raise SourceQueryError(f"Request to {url} failed: {e}") from e
    if not response.ok:
        raise SourceQueryError(f"HTTP {response.status_code}: {response.reason}")
    try:
        data = response.json()
    except ValueError as e:
        raise SourceQueryError(f"Invalid JSON from {url}") from e
    return infer_fields_from_data(data)


def test_rest_connection(config: RestConfig) -> Dict[str, Any]:
    try:
        response = requests.get(config.base_url, headers=build_auth_headers(config), timeout=settings.REST_TIMEOUT)
    except requests.RequestException as e:
        logger.warning("REST connection to %s failed: %s", config.base_url, redact_secrets(str(e)))
        return {"success": False, "message": redact_secrets(f"Connection failed: {e}")}

    if response.ok:
        return {"success": True, "message": f"Connected successfully to API: {config.base_url}"}
    return {"success": False, "message": f"HTTP {response.status_code}: {response.reason}"}


# Filesystem

def list_file_sources(config: FileSystemConfig) -> List[str]:
    base = resolve_base_path(config)
    if not os.path.isdir(base):
        raise SourceQueryError(f"Path does not exist: {config.base_path}")
    extensions = FILE_EXTENSIONS.get(config.format, ())
    return sorted(
        f for f in os.listdir(base)
        if os.path.isfile(os.path.join(base, f)) and (not extensions or f.endswith(extensions))
    )


def get_file_fields(config: FileSystemConfig, filename: str) -> List[ObjectField]:
    path = resolve_source_file(config, filename)
    try:
        data = read_source_file(path, config.format)
    except (OSError, ValueError) as e:
        raise SourceQueryError(f"Error reading file {filename}: {e}") from e
    return infer_fields_from_data(data, text_cells=config.format == "csv")


def test_filesystem_connection(config: FileSystemConfig) -> Dict[str, Any]:
    if not os.path.isdir(resolve_base_path(config)):
        return {"success": False, "message": f"Path does not exist: {config.base_path}"}
    return {"success": True, "message": f"File system path verified: {config.base_path}"}


# Dispatch by source type

def list_available_sources(source_type: str, config: Dict[str, Any]) -> List[str]:
    parsed = parse_config(source_type, config)
    if isinstance(parsed, MySQLConfig):
        return list_mysql_tables(parsed)
    if isinstance(parsed, RestConfig):
        return list_rest_endpoints(parsed)
    return list_file_sources(parsed)


def test_connection(source_type: str, config: Dict[str, Any]) -> Dict[str, Any]:
    """Check that a source is reachable; failures are reported, not raised."""
    try:
        parsed = parse_config(source_type, config)
    except ConfigValidationError as e:
        return {"success": False, "message": "; ".join([e.message] + e.details)}

    if isinstance(parsed, MySQLConfig):
        return test_mysql_connection(parsed)
    if isinstance(parsed, RestConfig):
        return test_rest_connection(parsed)
    return test_filesystem_connection(parsed)
