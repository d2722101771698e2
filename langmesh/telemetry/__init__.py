"""Telemetry capture, buffering, and delivery.

This package turns completed calls into `TelemetryEvent` records, buffers
them, and ships batches to the collection endpoint on a best-effort basis.
"""

from .buffer import PeriodicFlusher, TelemetryBuffer
from .cost_tracker import CostTracker
from .events import TelemetryEvent, TokenUsage
from .logger import TelemetryLogger, enable_logging
from .pricing import MODEL_PRICING, CostEstimator, ModelRate, estimate_cost
from .shipper import ShipResult, TelemetryShipper

__all__ = [
    "CostEstimator",
    "CostTracker",
    "MODEL_PRICING",
    "ModelRate",
    "PeriodicFlusher",
    "ShipResult",
    "TelemetryBuffer",
    "TelemetryEvent",
    "TelemetryLogger",
    "TelemetryShipper",
    "TokenUsage",
    "enable_logging",
    "estimate_cost",
]
