import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .workflow.compiler import CompilerOptions


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WIZFLOW_", env_file=".env", extra="ignore")

    # Runner
    runner_url: str = Field("ws://localhost:8000/ws", description="Runner control channel endpoint")

    # Compiler / loader policies
    drop_orphan_edges: bool = Field(False, description="Leave edges from unknown tasks out of depends_on")
    reject_cycles: bool = Field(False, description="Refuse to compile cyclic graphs")
    dangling_dependencies: Literal["reject", "drop"] = Field(
        "reject", description="What the loader does with depends_on entries that do not resolve"
    )
    strict_transitions: bool = Field(False, description="Drop unexpected status transitions")
    canvas_size: float = Field(500.0, gt=0, description="Placement range for tasks without a position")

    # Editor
    default_workflow_name: str = Field("New Workflow")

    # Logging Configuration
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    def compiler_options(self) -> CompilerOptions:
        return CompilerOptions(
            drop_orphan_edges=self.drop_orphan_edges,
            reject_cycles=self.reject_cycles,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
