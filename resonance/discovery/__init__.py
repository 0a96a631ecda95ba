"""Discovery pipeline and scheduling module."""

from resonance.discovery.candidates import CandidateGenerator
from resonance.discovery.engine import DiscoveryEngine
from resonance.discovery.models import (
    EngineStats,
    JobKind,
    PhotoAnalyzed,
    PhotoRemoved,
    PhotoState,
    SchedulerStatus,
)
from resonance.discovery.pipeline import DiscoveryPipeline
from resonance.discovery.scheduler import DiscoveryScheduler

__all__ = [
    "CandidateGenerator",
    "DiscoveryEngine",
    "DiscoveryPipeline",
    "DiscoveryScheduler",
    "EngineStats",
    "JobKind",
    "PhotoAnalyzed",
    "PhotoRemoved",
    "PhotoState",
    "SchedulerStatus",
]
