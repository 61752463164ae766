"""
Engine configuration for permgate.

Configuration is a frozen pydantic model, loadable from YAML:

    export_attribute: permissions
    nop_marker: ":NOP"
    log_level: WARNING
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EngineConfig(BaseModel):
    """
    Settings for the Evaluator and CLI.

    Attributes:
        export_attribute: Context attribute provider exports are attached to
        nop_marker: Passed-validation marker reported for no-op policies
        log_level: Level used by ``permgate.log.setup_logger``
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    export_attribute: str = Field(
        default="permissions",
        description="Context attribute provider exports are attached to",
        min_length=1,
    )
    nop_marker: str = Field(
        default=":NOP",
        description="Passed-validation marker reported for no-op policies",
        min_length=1,
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level name",
    )

    @field_validator("export_attribute")
    @classmethod
    def validate_export_attribute(cls, v: str) -> str:
        """Export attribute must be usable as a Python attribute name."""
        if not v.isidentifier():
            msg = f"Invalid export attribute name: {v}"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the level name."""
        level = v.upper()
        if level not in LOG_LEVELS:
            msg = f"Invalid log level: {v}. Must be one of: {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return level


def load_config(path: Path | str) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return EngineConfig.model_validate(data or {})


def load_config_from_string(content: str) -> EngineConfig:
    """Load engine configuration from a YAML string."""
    data = yaml.safe_load(content)
    return EngineConfig.model_validate(data or {})
