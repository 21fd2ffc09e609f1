"""
Exceptions raised when an import cannot produce any holdings.

Field-level problems never raise; they are collected as warnings on the
ParseResult instead.
"""

from typing import Optional


class CASAnalyzerError(Exception):
    """Base exception for structural import failures"""

    def __init__(self, message: str, error_code: str):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class StatementParseError(CASAnalyzerError):
    """The PDF statement could not be turned into holdings"""

    def __init__(self, message: str, error_code: str = "STATEMENT_PARSE_FAILED"):
        super().__init__(message, error_code=error_code)


class NoHoldingsDetectedError(StatementParseError):
    """No closing balance produced a holding; not a supported statement"""

    def __init__(
        self,
        message: str = (
            "Unable to detect holdings in the uploaded CAS. "
            "Please ensure you selected a CAMS or KFintech statement."
        ),
    ):
        super().__init__(message, error_code="NO_HOLDINGS_DETECTED")


class CSVFormatError(CASAnalyzerError):
    """Manually supplied CSV is malformed"""

    def __init__(self, message: str, error_code: str = "INVALID_CSV"):
        super().__init__(message, error_code=error_code)


class MissingColumnError(CSVFormatError):
    """A required CSV column is absent from the header"""

    def __init__(self, column: str, message: Optional[str] = None):
        self.column = column
        super().__init__(
            message or f'CSV column "{column}" is required.',
            error_code="MISSING_COLUMN",
        )


class InvalidRowError(CSVFormatError):
    """A CSV data row is unusable"""

    def __init__(self, row_number: int, reason: str):
        self.row_number = row_number
        super().__init__(f"Row {row_number}: {reason}", error_code="INVALID_ROW")
