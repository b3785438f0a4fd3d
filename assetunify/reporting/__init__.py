"""Reporting over the asset pool."""

from assetunify.reporting.coverage import generate_coverage_report, read_coverage_report

__all__ = ["generate_coverage_report", "read_coverage_report"]
