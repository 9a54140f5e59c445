"""
CSV Report Module
=================

Append-only CSV output shared by the report-producing commands.

Design Decisions:
-----------------
1. Each row is appended with its own open/close, so an interrupted run
   leaves a valid file holding every row written so far
2. preflight() creates the file with its header row, so a run that finds
   nothing still leaves a header-only report
3. The overwrite check runs in preflight(), before any directory or
   machine operation; an existing report without overwrite aborts the run
4. One writer per file; concurrent runs against the same path are unsupported
"""

from pathlib import Path

import pandas as pd


class ReportExistsError(FileExistsError):
    """The output file exists and overwriting was not allowed."""


class CsvReport:
    """UTF-8, comma-delimited report with a fixed column set.

    Usage:
        report = CsvReport("uptime.csv", MachineRecord.UPTIME_COLUMNS)
        report.preflight()
        report.append(record.to_uptime_row())
    """

    def __init__(self, path: str, columns: list[str], overwrite: bool = False):
        """Initialize the report.

        Args:
            path: Output file path
            columns: Column names, in order
            overwrite: Replace an existing file instead of aborting
        """
        self.path = Path(path)
        self.columns = list(columns)
        self.overwrite = overwrite
        self.rows_written = 0

    def preflight(self) -> None:
        """Check the output path and start the file with its header row.

        Raises:
            ReportExistsError: if the file exists and overwrite is disabled
        """
        if self.path.exists() and not self.overwrite:
            raise ReportExistsError(
                f"Output file {self.path} already exists (use --overwrite to replace it)"
            )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(columns=self.columns).to_csv(self.path, index=False, encoding="utf-8")

    def append(self, row: dict) -> None:
        """Append one row; missing columns are written empty."""
        write_header = not self.path.exists()
        frame = pd.DataFrame([row], columns=self.columns).fillna("")
        frame.to_csv(
            self.path,
            mode="a",
            header=write_header,
            index=False,
            encoding="utf-8",
        )
        self.rows_written += 1

    def read(self) -> pd.DataFrame:
        """Load the report back (all values as strings)."""
        return pd.read_csv(self.path, dtype=str, keep_default_na=False)
