from __future__ import annotations

from .recognition_orchestrator import RecognitionOrchestrator

__all__ = ["RecognitionOrchestrator"]
