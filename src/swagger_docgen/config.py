"""Run configuration.

Values load from ``SWAGGER_DOCGEN_*`` environment variables or a ``.env``
file in the working directory; command-line options override them.

Environment variables:
    SWAGGER_DOCGEN_ROUTER_FILE: router declaration, relative to the project root
    SWAGGER_DOCGEN_OUTPUT_DIR: output directory, relative to the project root
    SWAGGER_DOCGEN_SCAN_WORKERS: parallel file readers during the scan
    SWAGGER_DOCGEN_EXCLUDE_DIRS: extra directory names to skip (JSON list)
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SWAGGER_DOCGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    router_file: str = "routers/router.py"
    output_dir: str = "swagger"
    scan_workers: int = Field(default=4, ge=1)
    exclude_dirs: list[str] = []
