"""
Configuration for the CAS Portfolio Analyzer.

Engine thresholds live here as module constants; deployment settings
(data directory, history size) can be overridden through environment
variables via AnalyzerConfig.from_env().
"""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

logger = logging.getLogger(__name__)

# Line reconstruction
Y_TOLERANCE = 1.5  # fragments within this vertical band share a line
X_GAP_THRESHOLD = 6.0  # horizontal gap that becomes a space

# Holdings
MATERIALITY_THRESHOLD = Decimal("0.01")  # ignore market values below this
LARGE_PORTFOLIO_THRESHOLD = 50

# Analytics
CONCENTRATION_THRESHOLD = Decimal("20")  # fund family allocation percent
TOP_HOLDINGS_LIMIT = 5

# Reconciliation
RECONCILIATION_TOLERANCE = Decimal("0.02")  # 2% relative difference

# History
HISTORY_LIMIT = 15
STORAGE_KEY = "mf-portfolio-cas-analyses"

DEFAULT_DATA_DIR = Path.home() / ".cas_analyzer"


@dataclass
class AnalyzerConfig:
    """
    Runtime settings for the analyzer.

    Attributes:
        data_dir: Directory holding the saved analyses file
        history_limit: Number of analyses kept in history
        continuation_lines: Lines scanned after an incomplete closing balance
            (0 disables the fallback)
    """
    data_dir: Path = DEFAULT_DATA_DIR
    history_limit: int = HISTORY_LIMIT
    continuation_lines: int = 0

    @property
    def history_path(self) -> Path:
        """Path of the JSON file backing the analysis history."""
        return self.data_dir / f"{STORAGE_KEY}.json"

    @classmethod
    def from_env(cls) -> "AnalyzerConfig":
        """Build a config from CAS_ANALYZER_* environment variables."""
        data_dir = Path(os.environ.get("CAS_ANALYZER_DATA_DIR", str(DEFAULT_DATA_DIR)))
        history_limit = _int_from_env("CAS_ANALYZER_HISTORY_LIMIT", HISTORY_LIMIT)
        continuation_lines = _int_from_env("CAS_ANALYZER_CONTINUATION_LINES", 0)
        return cls(
            data_dir=data_dir,
            history_limit=max(1, history_limit),
            continuation_lines=max(0, continuation_lines),
        )


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default
