"""Failure types raised by the ingestion and synchronization layers."""
from __future__ import annotations

from typing import Sequence


class CostTrackError(Exception):
    """Base class for recoverable project-tracking failures."""


class MalformedCache(CostTrackError):
    """Raised when the durable local cache exists but cannot be parsed."""


class TabularReadError(CostTrackError):
    """Raised when a spreadsheet file cannot be decoded into rows."""


class NoRecognizedColumns(CostTrackError):
    """Raised when ingestion yields no project rows.

    ``row_count`` is the number of raw rows that were examined, so callers can
    tell an empty sheet apart from a sheet whose headers were not recognised.
    """

    def __init__(self, row_count: int, expected: Sequence[str]) -> None:
        self.row_count = row_count
        self.expected = tuple(expected)
        fragments = "、".join(self.expected)
        if row_count:
            message = f"未能讀取有效數據，請檢查 Excel 欄位名稱（需包含：{fragments}）"
        else:
            message = f"檔案中沒有任何資料列（欄位需包含：{fragments}）"
        super().__init__(message)


class RemoteUnavailable(CostTrackError):
    """Raised when the remote document store cannot be used."""


class AuthFailed(RemoteUnavailable):
    """Raised when the remote handshake rejects the configured credentials."""


class RemoteWriteFailed(CostTrackError):
    """Raised (or recorded) when pushing the project list to the remote store fails."""


class AnalysisFailed(CostTrackError):
    """Raised when the summarization service errors or returns no content."""


__all__ = [
    "CostTrackError",
    "MalformedCache",
    "TabularReadError",
    "NoRecognizedColumns",
    "RemoteUnavailable",
    "AuthFailed",
    "RemoteWriteFailed",
    "AnalysisFailed",
]
