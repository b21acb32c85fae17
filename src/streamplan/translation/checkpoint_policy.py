# src/streamplan/translation/checkpoint_policy.py
"""Checkpoint policy check.

Unbounded sources rely on engine checkpointing to recover their read
position after a failure. When a streaming pipeline is translated with
checkpointing disabled, a warning is logged and emitted as an event.

The check is advisory: it never aborts translation or execution, accepting
the durability risk is the caller's decision. It fires on every translation
of such a pipeline, however many unbounded sources it has.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from streamplan.contracts.enums import ExecutionMode
from streamplan.contracts.events import ConfigurationWarning
from streamplan.core.events import NullEventBus

if TYPE_CHECKING:
    from streamplan.core.config import CheckpointConfig
    from streamplan.core.events import EventBusProtocol

logger = structlog.get_logger(__name__)

# Stable message: external tooling matches on it verbatim.
CHECKPOINTING_DISABLED_MESSAGE = "UnboundedSources present which rely on checkpointing, but checkpointing is disabled."
CHECKPOINTING_DISABLED_CODE = "checkpointing_disabled"


def validate_checkpointing(
    mode: ExecutionMode,
    checkpoint: CheckpointConfig,
    *,
    event_bus: EventBusProtocol | None = None,
) -> ConfigurationWarning | None:
    """Warn when a streaming pipeline runs without checkpointing.

    Args:
        mode: Execution mode detected for the pipeline
        checkpoint: Engine checkpoint configuration (read only)
        event_bus: Where the ConfigurationWarning event is emitted

    Returns:
        The emitted warning, or None when the configuration carries no risk
    """
    if mode != ExecutionMode.STREAMING or checkpoint.enabled:
        return None

    warning = ConfigurationWarning(code=CHECKPOINTING_DISABLED_CODE, message=CHECKPOINTING_DISABLED_MESSAGE)
    logger.warning(CHECKPOINTING_DISABLED_MESSAGE, code=CHECKPOINTING_DISABLED_CODE)
    (event_bus if event_bus is not None else NullEventBus()).emit(warning)
    return warning
