"""Quality detectors run by the governance pipeline, in execution order."""

from .ai_ready import AiReadyDetector
from .base import Detector, Finding
from .duplicate import DuplicateContentDetector
from .inconsistent import InconsistentStructureDetector
from .incomplete import IncompleteContentDetector
from .outdated import OutdatedContentDetector
from .review_required import ReviewRequiredDetector

DETECTOR_CLASSES: tuple[type[Detector], ...] = (
    IncompleteContentDetector,
    DuplicateContentDetector,
    InconsistentStructureDetector,
    OutdatedContentDetector,
    AiReadyDetector,
    ReviewRequiredDetector,
)


def build_detectors(db, issue_store=None, **kwargs) -> list[Detector]:
    return [cls(db, issue_store, **kwargs) for cls in DETECTOR_CLASSES]


__all__ = [
    "AiReadyDetector",
    "DETECTOR_CLASSES",
    "Detector",
    "DuplicateContentDetector",
    "Finding",
    "InconsistentStructureDetector",
    "IncompleteContentDetector",
    "OutdatedContentDetector",
    "ReviewRequiredDetector",
    "build_detectors",
]
