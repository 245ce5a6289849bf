"""
Variant fan-out module.

Turns an approved project into N independently rendered variants.
"""

from modules.variant_fanout.controller import (
    VariantFanoutController,
    FanoutResult,
    bindings_for_variant,
    build_bindings
)
from modules.variant_fanout.dispatcher import RenderDispatcher, QueueRenderDispatcher

__all__ = [
    "VariantFanoutController",
    "FanoutResult",
    "build_bindings",
    "bindings_for_variant",
    "RenderDispatcher",
    "QueueRenderDispatcher",
]
