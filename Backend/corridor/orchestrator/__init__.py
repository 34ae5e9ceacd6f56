"""
Corridor worker orchestration
"""
from corridor.orchestrator.worker import CorridorWorker, build_worker

__all__ = ["CorridorWorker", "build_worker"]
