"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from typing import NewType

NodeID = NewType("NodeID", str)
"""Unique full hierarchical name of a transform node (e.g., 'Counts/Group')"""

CollectionID = NewType("CollectionID", str)
"""Identifier of a logical collection (e.g., 'Counts/Group.out')"""

OperatorID = NewType("OperatorID", str)
"""Identifier of a native engine operator (e.g., 'Counts/Group/keyed_window')"""

JobID = NewType("JobID", str)
"""Identifier assigned to a submitted job by the engine"""
