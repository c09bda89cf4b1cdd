from .comparison_service import ComparisonService
from .batch_service import BatchService
from .report_service import ReportService


__all__ = [
    'ComparisonService',
    'BatchService',
    'ReportService',
]
