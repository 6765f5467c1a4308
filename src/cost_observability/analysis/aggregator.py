"""Run detectors over one snapshot and roll their flags up."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import structlog

from cost_observability.detectors.base import Detector
from cost_observability.models import (
    CATEGORIES,
    SEVERITIES,
    DetectionMetadata,
    DetectorInput,
    RedFlag,
    RedFlagSummary,
)

logger = structlog.get_logger(__name__)

SEVERITY_ORDER = {severity: rank for rank, severity in enumerate(SEVERITIES)}


@dataclass
class AggregatedRedFlags:
    """Flags from every detector, sorted most severe first."""

    red_flags: list[RedFlag]
    summary: RedFlagSummary
    metadata: list[DetectionMetadata] = field(default_factory=list)


def sort_by_severity(red_flags: list[RedFlag]) -> list[RedFlag]:
    """Order flags critical, warning, info; ties keep their input order."""
    return sorted(red_flags, key=lambda flag: SEVERITY_ORDER[flag.severity])


def summarize(red_flags: list[RedFlag]) -> RedFlagSummary:
    """Count flags by severity and category and total the potential savings."""
    by_severity = dict.fromkeys(SEVERITIES, 0)
    by_category = dict.fromkeys(CATEGORIES, 0)
    savings = 0.0

    for flag in red_flags:
        by_severity[flag.severity] += 1
        by_category[flag.category] += 1
        if flag.estimated_savings is not None:
            savings += flag.estimated_savings

    return RedFlagSummary(
        total=len(red_flags),
        by_severity=by_severity,
        by_category=by_category,
        total_potential_savings=round(savings, 2),
    )


class RedFlagAggregator:
    """
    Run a set of detectors concurrently over the same input.

    A detector that raises is logged and contributes no flags. Flags are not
    deduplicated.
    """

    def __init__(self, detectors: list[Detector], max_workers: int = 4):
        self.detectors = list(detectors)
        self.max_workers = max_workers

    def detect_all(self, detector_input: DetectorInput) -> AggregatedRedFlags:
        if not self.detectors:
            return AggregatedRedFlags(red_flags=[], summary=summarize([]))

        started_at = time.perf_counter()
        red_flags: list[RedFlag] = []
        metadata: list[DetectionMetadata] = []

        workers = min(self.max_workers, len(self.detectors))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detector") as executor:
            futures = [
                (detector, executor.submit(detector.detect, detector_input))
                for detector in self.detectors
            ]

            for detector, future in futures:
                try:
                    output = future.result()
                except Exception as e:
                    logger.error(
                        "Detector failed",
                        detector_id=detector.detector_id,
                        error=str(e),
                        exc_info=True,
                    )
                    continue

                red_flags.extend(output.red_flags)
                metadata.append(output.detection_metadata)

        sorted_flags = sort_by_severity(red_flags)
        summary = summarize(sorted_flags)

        logger.info(
            "Red flag detection complete",
            deployment_id=detector_input.deployment_id,
            detectors=len(self.detectors),
            total=summary.total,
            critical=summary.by_severity["critical"],
            duration_ms=round((time.perf_counter() - started_at) * 1000, 1),
        )

        return AggregatedRedFlags(red_flags=sorted_flags, summary=summary, metadata=metadata)
