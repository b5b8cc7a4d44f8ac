"""
OLT Gateway - Configuración central con Pydantic Settings
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "OLT Gateway"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Sesión CLI (SSH)
    OLT_CONNECT_TIMEOUT: float = 15.0
    OLT_CLI_TIMEOUT: float = 30.0      # por cada espera de prompt
    OLT_DISABLE_PAGER: bool = True
    OLT_KNOWN_HOSTS: Optional[str] = None  # None = no verificar host key

    # SNMP
    OLT_SNMP_TIMEOUT: float = 5.0
    OLT_SNMP_RETRIES: int = 1

    # Reinicio de ONU: esperas (segundos) antes de cada verificación
    OLT_RESTART_DEACTIVATE_WAITS: list[float] = [3, 5, 10]
    OLT_RESTART_ACTIVATE_WAITS: list[float] = [5, 10, 15]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
