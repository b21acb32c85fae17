# src/streamplan/core/config.py
"""
Pipeline options schema and loading.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Options are frozen (immutable) after construction.
"""

import re
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from streamplan.contracts.enums import RunnerTarget

# Sentinel master addresses that select the in-process engine.
MASTER_AUTO = "[auto]"
MASTER_LOCAL = "[local]"
_LOCAL_MASTERS = frozenset({MASTER_AUTO, MASTER_LOCAL})

# host:port with an optional http(s) scheme, e.g. "jobmanager:8081"
_MASTER_ADDRESS_RE = re.compile(r"^(?:https?://)?[A-Za-z0-9_.\-]+:(\d{1,5})/?$")


def _check_checkpoint_interval(enabled: bool, interval: timedelta | None) -> None:
    if enabled and (interval is None or interval <= timedelta(0)):
        raise ValueError("a positive checkpoint interval is required when checkpointing is enabled")


class CheckpointConfig(BaseModel):
    """Checkpointing configuration of the execution engine.

    Supplied externally and attached to the execution plan verbatim.
    StreamPlan only reads it; it reports on the durability risk of a
    disabled configuration but never changes it.

    Attributes:
        enabled: Whether the engine periodically persists processing state
        interval: Time between checkpoints (only meaningful when enabled)
    """

    model_config = {"frozen": True}

    enabled: bool = False
    interval: timedelta | None = None

    @model_validator(mode="after")
    def validate_interval(self) -> "CheckpointConfig":
        _check_checkpoint_interval(self.enabled, self.interval)
        return self


class PipelineOptions(BaseModel):
    """Options recognized by the runner.

    Example YAML:
        runner_target: standard
        master_address: "jobmanager:8081"
        checkpointing_enabled: true
        checkpoint_interval: 60      # seconds, or ISO 8601 ("PT1M")
        parallelism: 4
        log_level: INFO
        log_json: false
    """

    model_config = {"frozen": True, "extra": "forbid"}

    runner_target: RunnerTarget = Field(
        default=RunnerTarget.STANDARD,
        description="Runner flavour: 'standard' returns job results, 'test' raises on failure",
    )
    master_address: str = Field(
        default=MASTER_AUTO,
        description="Cluster endpoint 'host:port', or '[auto]'/'[local]' for the in-process engine",
    )
    checkpointing_enabled: bool = Field(default=False, description="Enable engine checkpointing")
    checkpoint_interval: timedelta | None = Field(default=None, description="Time between checkpoints")
    parallelism: int | None = Field(
        default=None,
        gt=0,
        description="Operator parallelism (default: number of available CPUs)",
    )
    job_name: str | None = Field(default=None, description="Name of the submitted job")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout for cluster requests")
    poll_interval_seconds: float = Field(default=1.0, gt=0, description="Delay between cluster job status polls")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = Field(
        default=None,
        description="Configure logging at this level when the runner starts (default: leave logging alone)",
    )
    log_json: bool = Field(default=False, description="Render log lines as JSON instead of console output")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("master_address")
    @classmethod
    def validate_master_address(cls, v: str) -> str:
        if v in _LOCAL_MASTERS:
            return v
        match = _MASTER_ADDRESS_RE.match(v)
        if match is None or not 0 < int(match.group(1)) < 65536:
            raise ValueError(f"master_address must be '[auto]', '[local]' or 'host:port', got {v!r}")
        return v

    @model_validator(mode="after")
    def validate_checkpointing(self) -> "PipelineOptions":
        _check_checkpoint_interval(self.checkpointing_enabled, self.checkpoint_interval)
        return self

    @property
    def checkpoint_config(self) -> CheckpointConfig:
        return CheckpointConfig(enabled=self.checkpointing_enabled, interval=self.checkpoint_interval)

    @property
    def uses_local_engine(self) -> bool:
        return self.master_address in _LOCAL_MASTERS


def load_options(config_path: Path) -> PipelineOptions:
    """Load options from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (STREAMPLAN_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated PipelineOptions instance

    Raises:
        ValidationError: If options fail Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="STREAMPLAN",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; filter out its own internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return PipelineOptions(**raw_config)
