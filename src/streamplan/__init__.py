"""
StreamPlan: translate portable dataflow pipelines into engine execution plans.

A pipeline graph of transforms over logical collections is compiled into a
native operator graph for a streaming/batch engine, then submitted and
observed until it finishes.
"""

__version__ = "0.4.0"
