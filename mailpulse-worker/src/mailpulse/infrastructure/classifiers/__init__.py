"""Classifier implementations and factory."""

from mailpulse.application.ports.classifier import PriorityClassifier
from mailpulse.infrastructure.classifiers.fallback import (
    FixedPriorityClassifier,
    KeywordPriorityClassifier,
    RandomPriorityClassifier,
)
from mailpulse.infrastructure.settings import Settings


def build_classifier(settings: Settings) -> PriorityClassifier:
    """Create the classifier named by ``settings.classifier``."""
    if settings.classifier == "fixed":
        return FixedPriorityClassifier(settings.fixed_priority)
    if settings.classifier == "random":
        return RandomPriorityClassifier(settings.classifier_seed)
    return KeywordPriorityClassifier()


__all__ = [
    "FixedPriorityClassifier",
    "KeywordPriorityClassifier",
    "RandomPriorityClassifier",
    "build_classifier",
]
