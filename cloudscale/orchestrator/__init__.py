"""Orchestrator package - coordinates batch upscale runs."""
from .core import UpscaleOrchestrator
from .pipeline import ItemPipeline
from .scheduler import BatchScheduler
from .session import RunSession

__all__ = ["UpscaleOrchestrator", "ItemPipeline", "BatchScheduler", "RunSession"]
