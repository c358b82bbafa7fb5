"""Object storage analysis operations."""

from .content_scan import ContentScanner, ScanSummary
from .prefix_metrics import PrefixAnalyzer, PrefixMetrics
from .record_sampler import RecordSampler, SampleSummary, walk_record

__all__ = [
    "ContentScanner",
    "PrefixAnalyzer",
    "PrefixMetrics",
    "RecordSampler",
    "SampleSummary",
    "ScanSummary",
    "walk_record",
]
