"""
Special schemas for the configuration file and its properties
"""

from typing import Dict, Optional, Union

import pydantic

from ..caching import ResourceClass


class ServerConfig(pydantic.BaseModel):
    host: str = "127.0.0.1"
    port: pydantic.conint(gt=0, lt=65536) = 8000
    jwt_secret: Optional[pydantic.constr(min_length=16)] = None
    token_expiration_minutes: pydantic.PositiveInt = 120
    allow_weak_insecure_password_hashes: bool = False


class CachingConfig(pydantic.BaseModel):
    owned_by_requester: pydantic.NonNegativeInt = 300
    owned_by_other: pydantic.NonNegativeInt = 180
    collection: pydantic.NonNegativeInt = 120
    search_result: pydantic.NonNegativeInt = 60
    administrative: pydantic.NonNegativeInt = 120

    @property
    def durations(self) -> Dict[ResourceClass, int]:
        return {ResourceClass(k): v for k, v in self.model_dump().items()}


class DatabaseConfig(pydantic.BaseModel):
    connection: str = "sqlite://"
    debug_sql: bool = False


class LoggingConfig(pydantic.BaseModel):
    version: pydantic.conint(ge=1, le=1) = 1
    disable_existing_loggers: bool = False
    incremental: bool = False
    filters: Dict[str, Dict[str, Union[str, list]]] = {
        "multipart_no_debug": {
            "()": "accounts_core.misc.logger.NoDebugFilter",
            "name": "multipart.multipart"
        }
    }
    formatters: Dict[str, Dict[str, str]] = {
        "default": {
            "style": "{",
            "format": "{asctime}: accounts {process}: [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M:%S"
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": "%(asctime)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"
        }
    }
    loggers: Dict[str, dict] = {
        "uvicorn.access": {
            "level": "INFO",
            "handlers": ["access"],
            "propagate": False
        }
    }
    handlers: Dict[str, Dict[str, Union[str, list]]] = {
        "default": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default",
            "filters": ["multipart_no_debug"]
        },
        "access": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "access"
        }
    }
    root: dict = {
        "level": "INFO",
        "handlers": ["default"]
    }


class CoreConfig(pydantic.BaseModel):
    server: ServerConfig = pydantic.Field(default_factory=ServerConfig)
    caching: CachingConfig = pydantic.Field(default_factory=CachingConfig)
    database: DatabaseConfig = pydantic.Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = pydantic.Field(default_factory=LoggingConfig)
