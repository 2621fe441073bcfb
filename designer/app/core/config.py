from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    API_PREFIX: str = "/designer"
    PROJECT_NAME: str = "Low-Code Designer"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # YAML store: _access.yaml plus one directory per data source
    DATADEF_DIR: str = "datadef"

    # Generated pydantic models, one class per object definition
    CUSTOM_MODELS_PATH: str = "generated/custom_models.py"
    INTERFACE_SCAN_PATHS: List[str] = ["generated", "models"]

    # Route tree written by the module designer
    ROUTING_FILE: str = "generated/routing.json"

    # Filesystem data sources resolve their basePath against this directory
    FILESYSTEM_ROOT: str = "."

    REST_TIMEOUT: float = 10.0
    MYSQL_CONNECT_TIMEOUT: int = 10

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
