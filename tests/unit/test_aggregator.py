"""Tests for red flag aggregation."""

from cost_observability.analysis.aggregator import (
    RedFlagAggregator,
    sort_by_severity,
    summarize,
)
from cost_observability.models import DetectionMetadata, DetectorOutput, RedFlag


def make_flag(severity: str, category: str = "cost_anomaly", savings: float | None = None):
    return RedFlag(
        category=category,
        severity=severity,
        title=f"{severity} {category}",
        description="test flag",
        estimated_savings=savings,
    )


class StaticDetector:
    """Detector returning a fixed set of flags."""

    detector_version = "0.0.1"
    category = "cost_anomaly"

    def __init__(self, detector_id: str, red_flags: list[RedFlag]):
        self.detector_id = detector_id
        self.red_flags = red_flags
        self.calls = 0

    def detect(self, detector_input):
        self.calls += 1
        return DetectorOutput(
            red_flags=self.red_flags,
            detection_metadata=DetectionMetadata(
                detector_id=self.detector_id,
                detector_version=self.detector_version,
                resources_scanned=1,
            ),
        )


class BrokenDetector:
    """Detector that always raises."""

    detector_id = "broken-detector"
    detector_version = "0.0.1"
    category = "security_risk"

    def detect(self, detector_input):
        raise RuntimeError("detector exploded")


class TestSummarize:
    """Tests for summary counts."""

    def test_no_flags(self):
        """Test every severity and category is present with zero."""
        summary = summarize([])

        assert summary.total == 0
        assert summary.by_severity == {"critical": 0, "warning": 0, "info": 0}
        assert summary.by_category == {
            "cost_anomaly": 0,
            "resource_waste": 0,
            "security_risk": 0,
            "deployment_failure": 0,
        }
        assert summary.total_potential_savings == 0.0

    def test_counts_and_savings(self):
        """Test counts per severity and category, missing savings count as zero."""
        summary = summarize(
            [
                make_flag("critical", "resource_waste", savings=30.37),
                make_flag("warning", "resource_waste", savings=3.65),
                make_flag("warning", "security_risk"),
                make_flag("info", "cost_anomaly", savings=0.001),
            ]
        )

        assert summary.total == 4
        assert summary.by_severity == {"critical": 1, "warning": 2, "info": 1}
        assert summary.by_category["resource_waste"] == 2
        assert summary.by_category["deployment_failure"] == 0
        assert summary.total_potential_savings == 34.02


class TestSortBySeverity:
    """Tests for severity ordering."""

    def test_order_is_critical_warning_info(self):
        """Test flags are ordered most severe first."""
        flags = [make_flag("info"), make_flag("critical"), make_flag("warning")]

        assert [f.severity for f in sort_by_severity(flags)] == ["critical", "warning", "info"]

    def test_ties_keep_input_order(self):
        """Test sorting is stable within a severity."""
        first = make_flag("warning", "cost_anomaly")
        second = make_flag("warning", "resource_waste")
        third = make_flag("warning", "security_risk")

        assert sort_by_severity([first, second, third]) == [first, second, third]


class TestRedFlagAggregator:
    """Tests for running detectors together."""

    def test_merges_and_sorts(self, detector_input):
        """Test flags from all detectors are merged and sorted."""
        aggregator = RedFlagAggregator(
            [
                StaticDetector("a", [make_flag("info"), make_flag("warning")]),
                StaticDetector("b", [make_flag("critical", "security_risk")]),
            ]
        )

        result = aggregator.detect_all(detector_input)

        assert [f.severity for f in result.red_flags] == ["critical", "warning", "info"]
        assert result.summary.total == 3
        assert [m.detector_id for m in result.metadata] == ["a", "b"]

    def test_failing_detector_is_isolated(self, detector_input):
        """Test one raising detector does not lose the others' flags."""
        healthy = StaticDetector("healthy", [make_flag("warning")])
        aggregator = RedFlagAggregator([BrokenDetector(), healthy])

        result = aggregator.detect_all(detector_input)

        assert result.summary.total == 1
        assert healthy.calls == 1
        assert [m.detector_id for m in result.metadata] == ["healthy"]

    def test_no_detectors(self, detector_input):
        """Test an empty detector set gives an empty result."""
        result = RedFlagAggregator([]).detect_all(detector_input)

        assert result.red_flags == []
        assert result.summary.total == 0

    def test_duplicates_are_kept(self, detector_input):
        """Test identical flags from two detectors are not merged."""
        flag = make_flag("warning")
        aggregator = RedFlagAggregator(
            [StaticDetector("a", [flag]), StaticDetector("b", [flag])]
        )

        assert aggregator.detect_all(detector_input).summary.total == 2
