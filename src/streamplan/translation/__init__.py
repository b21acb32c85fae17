# src/streamplan/translation/__init__.py
"""Translation of pipeline graphs into execution plans.

Steps run strictly forward: mode detection, checkpoint policy,
transform translation, execution environment.
"""

from streamplan.translation.checkpoint_policy import (
    CHECKPOINTING_DISABLED_CODE,
    CHECKPOINTING_DISABLED_MESSAGE,
    validate_checkpointing,
)
from streamplan.translation.environment import (
    ExecutionPlan,
    ExecutionTarget,
    build_execution_plan,
)
from streamplan.translation.mode import detect_execution_mode
from streamplan.translation.operators import Operator, OperatorGraph, OperatorInput
from streamplan.translation.translator import TransformTranslator, translate_graph

__all__ = [
    "CHECKPOINTING_DISABLED_CODE",
    "CHECKPOINTING_DISABLED_MESSAGE",
    "ExecutionPlan",
    "ExecutionTarget",
    "Operator",
    "OperatorGraph",
    "OperatorInput",
    "TransformTranslator",
    "build_execution_plan",
    "detect_execution_mode",
    "translate_graph",
    "validate_checkpointing",
]
