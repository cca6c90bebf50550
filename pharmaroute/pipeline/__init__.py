"""Fallback ladder orchestration for the pharmaroute engine."""

from pharmaroute.pipeline.orchestrator import FallbackOrchestrator

__all__ = [
    "FallbackOrchestrator",
]
