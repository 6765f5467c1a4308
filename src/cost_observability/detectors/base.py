"""Detector contract and helpers shared by every detector."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol, runtime_checkable

import structlog

from cost_observability.config.schema import DetectorConfig
from cost_observability.models import (
    AWSResourceInventory,
    DetectionMetadata,
    DetectorInput,
    DetectorOutput,
    RedFlag,
    RedFlagCategory,
)

logger = structlog.get_logger(__name__)

SubCheck = Callable[[DetectorInput], list[RedFlag]]


@runtime_checkable
class Detector(Protocol):
    """
    Anything that turns a cost/resource snapshot into red flags.

    Implementations must not mutate the input and must be safe to run in
    parallel with other detectors. A disabled detector returns an empty
    output without touching any external service.
    """

    detector_id: str
    detector_version: str
    category: RedFlagCategory

    def detect(self, detector_input: DetectorInput) -> DetectorOutput: ...


def disabled_output(detector_id: str, detector_version: str) -> DetectorOutput:
    """Output of a detector that is switched off."""
    return DetectorOutput(
        red_flags=[],
        detection_metadata=DetectionMetadata(
            detector_id=detector_id,
            detector_version=detector_version,
            execution_time_ms=0,
            resources_scanned=0,
        ),
    )


def build_output(
    detector_id: str,
    detector_version: str,
    red_flags: list[RedFlag],
    started_at: float,
    resources_scanned: int,
) -> DetectorOutput:
    """Wrap flags with timing metadata. ``started_at`` is a perf_counter value."""
    elapsed_ms = (time.perf_counter() - started_at) * 1000
    return DetectorOutput(
        red_flags=red_flags,
        detection_metadata=DetectionMetadata(
            detector_id=detector_id,
            detector_version=detector_version,
            execution_time_ms=round(elapsed_ms, 3),
            resources_scanned=resources_scanned,
        ),
    )


def apply_exclusions(
    red_flags: list[RedFlag],
    config: DetectorConfig,
    inventory: AWSResourceInventory,
) -> list[RedFlag]:
    """Drop flags for excluded resource IDs or resources carrying excluded tags."""
    if not config.excluded_resources and not config.excluded_tags:
        return red_flags

    excluded_ids = set(config.excluded_resources)
    kept = []

    for flag in red_flags:
        if flag.resource_id is None:
            kept.append(flag)
            continue

        if flag.resource_id in excluded_ids:
            continue

        resource = inventory.find(flag.resource_id)
        if resource is not None and resource.has_tags(config.excluded_tags):
            continue

        kept.append(flag)

    return kept


def run_sub_checks(
    detector_id: str,
    checks: list[tuple[str, SubCheck]],
    detector_input: DetectorInput,
    max_workers: int = 4,
) -> list[RedFlag]:
    """
    Run independent sub-checks concurrently.

    Results keep the order of ``checks``. A sub-check that raises is logged
    and contributes no flags; the others are unaffected.
    """
    if not checks:
        return []

    with ThreadPoolExecutor(max_workers=min(max_workers, len(checks))) as executor:
        futures = [
            (name, executor.submit(check, detector_input)) for name, check in checks
        ]

        red_flags: list[RedFlag] = []
        for name, future in futures:
            try:
                red_flags.extend(future.result())
            except Exception as e:
                logger.error(
                    "Detector sub-check failed",
                    detector_id=detector_id,
                    check=name,
                    error=str(e),
                )

    return red_flags
