"""
adsweep Reporting Module
========================

Report output for the sweep, inventory and audit commands.

Components:
- csv_report.py: Append-only CSV reports with overwrite pre-flight

Design Philosophy:
- Console findings are emitted as they happen by each component's _log
- CSV rows are appended one at a time so partial runs stay readable
"""

from .csv_report import CsvReport, ReportExistsError
