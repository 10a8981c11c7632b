"""Report export module."""

from .report_exporter import ReportExporter, export_report

__all__ = [
    'ReportExporter',
    'export_report'
]
