"""
AWS Cost Observability - weekly spend analysis for AWS deployments.

A small engine for:
- Collecting weekly cost summaries and live resource inventories
- Running independent red-flag detectors concurrently
- Projecting next-week and monthly spend with confidence intervals
- Summarizing findings for downstream reports
"""

__version__ = "0.1.0"
