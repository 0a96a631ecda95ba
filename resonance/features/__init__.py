"""Feature record store module."""

from resonance.features.models import Collection, FeatureRecord
from resonance.features.store import FeatureChangeListener, FeatureStore

__all__ = [
    "Collection",
    "FeatureChangeListener",
    "FeatureRecord",
    "FeatureStore",
]
