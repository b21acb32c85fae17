# src/streamplan/sdk/__init__.py
"""Pipeline construction API."""

from streamplan.sdk.io import CreateSource, SequenceSource, TextSink, shard_path
from streamplan.sdk.pipeline import PCollection, Pipeline, PrimitiveTransform, PTransform
from streamplan.sdk.transforms import (
    CountPerElement,
    Create,
    FlatMap,
    GenerateSequence,
    GroupByKey,
    Map,
    ParDo,
    Read,
    SumPerKey,
    WindowInto,
    Write,
    WriteToText,
)

__all__ = [
    "CountPerElement",
    "Create",
    "CreateSource",
    "FlatMap",
    "GenerateSequence",
    "GroupByKey",
    "Map",
    "PCollection",
    "PTransform",
    "ParDo",
    "Pipeline",
    "PrimitiveTransform",
    "Read",
    "SequenceSource",
    "SumPerKey",
    "TextSink",
    "WindowInto",
    "Write",
    "WriteToText",
    "shard_path",
]
