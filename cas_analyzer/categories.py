"""
Asset category inference for mutual fund schemes.

Categories are inferred from keywords in the scheme name (statement
imports) or from the explicit category cell (CSV imports).
"""

import re
from typing import List, Optional, Pattern, Tuple

from cas_analyzer.models import AssetCategory

# Evaluated in order, first match wins. A "Gold ETF Fund of Fund" is Gold,
# a "Balanced Advantage Equity" scheme is Hybrid.
CATEGORY_RULES: List[Tuple[Pattern[str], AssetCategory]] = [
    (re.compile(r"gold"), AssetCategory.GOLD),
    (
        re.compile(r"liquid|overnight|income|bond|gilt|debt|money[\s-]*market"),
        AssetCategory.DEBT,
    ),
    (
        re.compile(r"hybrid|balanced|asset\s*allocator|multi[\s-]*asset"),
        AssetCategory.HYBRID,
    ),
    (
        re.compile(
            r"equity|large\s*cap|mid\s*cap|small\s*cap|flexi|value|focused|elss|tax\s*saver"
        ),
        AssetCategory.EQUITY,
    ),
]


def classify_category(text: Optional[str]) -> AssetCategory:
    """
    Map a scheme name or category label to an asset category.

    Args:
        text: Scheme name or explicit category label.

    Returns:
        The first matching category, or OTHER.
    """
    name = (text or "").lower()
    for pattern, category in CATEGORY_RULES:
        if pattern.search(name):
            return category
    return AssetCategory.OTHER
