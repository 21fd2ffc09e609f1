"""
Holdings extraction from reconstructed CAS statement lines.

The parser walks the statement once, tracking the current fund house,
folio and scheme. Each "Closing Unit Balance" line closes the current
scheme and becomes one holding. The scan is a fold of an immutable
StatementState over the lines; line handling is driven by an ordered
rule table where the first matching rule wins.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from cas_analyzer.categories import classify_category
from cas_analyzer.config import MATERIALITY_THRESHOLD
from cas_analyzer.exceptions import NoHoldingsDetectedError
from cas_analyzer.models import AssetCategory, Holding, ReconstructedLine

logger = logging.getLogger(__name__)

LineLike = Union[ReconstructedLine, str]

# Regex building blocks
DATE = r"\d{2}-[A-Za-z]{3}-\d{4}"
CURRENCY = r"(?:(?:INR|Rs\.?|₹)\s*)?"
AMOUNT = r"([(-]*[\d,]+(?:\.\d+)?\)?)"

CURRENCY_MARKERS = re.compile(r"INR|Rs\.?|₹", re.IGNORECASE)

FUND_HEADER_PATTERN = re.compile(r"Mutual\s*Fund\s*$", re.IGNORECASE)
SUMMARY_HEADER_PATTERN = re.compile(r"portfolio\s*summary", re.IGNORECASE)
FOLIO_MARKER = re.compile(r"Folio\s*No", re.IGNORECASE)
FOLIO_PATTERN = re.compile(
    r"Folio\s*No\.?\s*:?\s*(.+?)\s*(?=\||\bPAN\s*:|\bKYC\s*:|$)", re.IGNORECASE
)
PAN_PATTERN = re.compile(r"PAN\s*:\s*([A-Z0-9]+)", re.IGNORECASE)
SCHEME_MARKER = "ISIN"
ISIN_SPLIT = re.compile(r"ISIN\s*:", re.IGNORECASE)
ISIN_PATTERN = re.compile(r"ISIN\s*:\s*([A-Z0-9]+)", re.IGNORECASE)
SCHEME_CODE_PREFIX = re.compile(r"^(?=[A-Z]*\d)[A-Z0-9]+\s*[-–]\s*", re.IGNORECASE)
ADVISOR_SUFFIX = re.compile(r"\s*\(\s*Advis(?:o|e)r.*$", re.IGNORECASE)
CLOSING_MARKER = re.compile(r"Closing\s*Unit\s*Balance", re.IGNORECASE)

# Closing balance fields: (field, label used in warnings, pattern)
CLOSING_BALANCE_FIELDS: List[Tuple[str, str, re.Pattern]] = [
    (
        "units",
        "Closing Unit Balance",
        re.compile(rf"Closing\s*Unit\s*Balance\s*:?\s*{AMOUNT}", re.IGNORECASE),
    ),
    (
        "nav",
        "NAV",
        re.compile(rf"(?<![A-Za-z])NAV(?:\s*on\s*{DATE})?\s*:?\s*{CURRENCY}{AMOUNT}", re.IGNORECASE),
    ),
    (
        "cost_value",
        "Total Cost Value",
        re.compile(rf"Total\s*Cost\s*Value\s*:?\s*{CURRENCY}{AMOUNT}", re.IGNORECASE),
    ),
    (
        "market_value",
        "Market Value",
        re.compile(
            rf"(?:Market\s*Value|Valuation)(?:\s*on\s*{DATE})?\s*:?\s*{CURRENCY}{AMOUNT}",
            re.IGNORECASE,
        ),
    ),
]


def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse a statement amount.

    Thousands separators and currency markers are removed and a value in
    parentheses is negative. Unparsable text gives None, never zero, so
    callers can tell an absent field from an explicit 0.

    Args:
        raw: Amount text such as "1,234.50", "INR 99.10" or "(12.00)".

    Returns:
        The amount, or None.
    """
    if raw is None:
        return None
    text = CURRENCY_MARKERS.sub("", str(raw)).strip()
    if not text:
        return None

    negative = text.startswith("(") and text.endswith(")")
    normalized = re.sub(r"[(),\s]", "", text)
    if not normalized:
        return None

    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -value if negative else value


def extract_label_amount(text: str, pattern: re.Pattern) -> Optional[Decimal]:
    """Parse the amount captured by a labelled-field pattern, if present."""
    match = pattern.search(text)
    return parse_amount(match.group(1)) if match else None


def make_holding_id(
    fund_family: str, folio: str, scheme_name: str, suffix: Optional[str] = None
) -> str:
    """Deterministic identity for a statement holding."""
    return f"{fund_family}|{folio}|{scheme_name}|{suffix or ''}"


def scrub_holdings(
    holdings: Sequence[Holding], threshold: Decimal = MATERIALITY_THRESHOLD
) -> List[Holding]:
    """
    Normalize extracted holdings, whatever their source.

    Holdings with a market value below the materiality threshold are
    dropped; strings are trimmed, missing numbers become 0 and a missing
    category becomes OTHER.

    Args:
        holdings: Holdings straight from an extractor.
        threshold: Smallest market value kept.

    Returns:
        New, scrubbed holdings.
    """
    zero = Decimal("0")
    scrubbed = []
    for holding in holdings:
        if (holding.market_value or zero) < threshold:
            logger.debug(f"Dropping immaterial holding: {holding.scheme_name[:50]}")
            continue
        scrubbed.append(
            replace(
                holding,
                fund_family=(holding.fund_family or "").strip(),
                folio=(holding.folio or "").strip(),
                scheme_name=(holding.scheme_name or "").strip(),
                category=holding.category or AssetCategory.OTHER,
                units=holding.units if holding.units is not None else zero,
                nav=holding.nav if holding.nav is not None else zero,
                market_value=holding.market_value if holding.market_value is not None else zero,
                cost_value=holding.cost_value if holding.cost_value is not None else zero,
            )
        )
    return scrubbed


# Line predicates

def is_fund_header(text: str) -> bool:
    return bool(FUND_HEADER_PATTERN.search(text.strip())) and not SUMMARY_HEADER_PATTERN.search(text)


def is_folio_line(text: str) -> bool:
    return bool(FOLIO_MARKER.search(text))


def is_scheme_line(text: str) -> bool:
    return SCHEME_MARKER in text


def is_closing_balance_line(text: str) -> bool:
    return bool(CLOSING_MARKER.search(text))


@dataclass(frozen=True)
class FolioContext:
    """Folio currently in scope."""
    number: str
    pan: Optional[str] = None


@dataclass(frozen=True)
class SchemeContext:
    """Scheme currently in scope, awaiting its closing balance."""
    name: str
    isin: Optional[str] = None
    category: AssetCategory = AssetCategory.OTHER


@dataclass(frozen=True)
class PendingBalance:
    """
    Closing balance block still missing fields.

    Only used when continuation lines are enabled.
    """
    values: Dict[str, Decimal] = field(default_factory=dict)
    remaining_lines: int = 0


@dataclass(frozen=True)
class StatementState:
    """
    Scanner state carried from one line to the next.

    Attributes:
        fund_family: Current fund house
        folio: Current folio
        scheme: Current scheme, cleared once its holding is emitted
        pending: Incomplete closing balance awaiting continuation lines
    """
    fund_family: Optional[str] = None
    folio: Optional[FolioContext] = None
    scheme: Optional[SchemeContext] = None
    pending: Optional[PendingBalance] = None


@dataclass(frozen=True)
class Transition:
    """Result of feeding one line to the scanner."""
    state: StatementState
    holding: Optional[Holding] = None
    warnings: Tuple[str, ...] = ()


def parse_folio(text: str) -> FolioContext:
    match = FOLIO_PATTERN.search(text)
    number = match.group(1).strip(" :") if match else ""
    pan_match = PAN_PATTERN.search(text)
    return FolioContext(
        number=number or "Unknown Folio",
        pan=pan_match.group(1).strip() if pan_match else None,
    )


def clean_scheme_name(raw: str) -> str:
    """Strip the leading scheme code, advisor suffix and stray punctuation."""
    trimmed = " ".join(raw.split())
    trimmed = ADVISOR_SUFFIX.sub("", trimmed)
    without_code = SCHEME_CODE_PREFIX.sub("", trimmed)
    without_code = re.sub(r"^[\s\-–:|]+|[\s\-–:|]+$", "", without_code)
    return without_code or trimmed


def parse_scheme(text: str) -> SchemeContext:
    raw_name = ISIN_SPLIT.split(text, maxsplit=1)[0]
    if raw_name == text:
        raw_name = text.split(SCHEME_MARKER, 1)[0] or text
    name = clean_scheme_name(raw_name)
    isin_match = ISIN_PATTERN.search(text)
    return SchemeContext(
        name=name,
        isin=isin_match.group(1).upper() if isin_match else None,
        category=classify_category(name),
    )


class StatementParser:
    """
    Single-pass scanner turning statement lines into holdings.

    Handles:
    - Fund house headers ("... Mutual Fund")
    - Folio lines, with an optional PAN
    - Scheme lines carrying an ISIN
    - Closing balance lines with units, NAV, cost and market value

    With continuation_lines > 0 an incomplete closing balance line may be
    completed from the lines that follow it. This is a fallback for
    layouts that wrap the block; single-line extraction is the default.
    """

    # Ordered (name, predicate, handler) table, first match wins
    LINE_RULES: List[Tuple[str, Callable[[str], bool], str]] = [
        ("fund_header", is_fund_header, "_on_fund_header"),
        ("folio", is_folio_line, "_on_folio"),
        ("scheme", is_scheme_line, "_on_scheme"),
        ("closing_balance", is_closing_balance_line, "_on_closing_balance"),
    ]

    def __init__(self, continuation_lines: int = 0):
        """
        Initialize the statement parser.

        Args:
            continuation_lines: Lines to scan for fields missing from a
                closing balance line; 0 disables the fallback.
        """
        self.continuation_lines = max(0, continuation_lines)

    def parse(self, lines: Sequence[LineLike]) -> Tuple[List[Holding], List[str]]:
        """
        Parse holdings from reconstructed statement lines.

        Args:
            lines: Reconstructed lines (or plain strings), top to bottom.

        Returns:
            Tuple of (scrubbed holdings, warnings).
        """
        state = StatementState()
        holdings: List[Holding] = []
        warnings: List[str] = []

        logger.info(f"Parsing holdings from {len(lines)} lines")

        for line in lines:
            text = line.text if isinstance(line, ReconstructedLine) else str(line)
            transition = self.step(state, text)
            state = transition.state
            if transition.holding is not None:
                holdings.append(transition.holding)
                logger.debug(f"Parsed holding: {transition.holding.scheme_name[:50]}")
            warnings.extend(transition.warnings)

        if state.pending is not None:
            warnings.append(self._incomplete_warning(state.scheme, state.pending.values))

        for warning in warnings:
            logger.warning(warning)

        scrubbed = scrub_holdings(holdings)
        logger.info(f"Parsed {len(scrubbed)} holdings ({len(holdings) - len(scrubbed)} immaterial)")
        return scrubbed, warnings

    def step(self, state: StatementState, text: str) -> Transition:
        """
        Feed one line to the scanner.

        Args:
            state: State before the line.
            text: Line text.

        Returns:
            Transition with the new state and anything emitted.
        """
        rule = self.match_rule(text)

        if state.pending is not None:
            if rule is None:
                return self._continue_pending(state, text)
            warning = self._incomplete_warning(state.scheme, state.pending.values)
            state = replace(state, pending=None)
            transition = self.step(state, text)
            return replace(transition, warnings=(warning,) + transition.warnings)

        if rule is None:
            return Transition(state)
        name, _, handler = rule
        logger.debug(f"Line matched {name}: {text[:60]}")
        return getattr(self, handler)(state, text)

    def match_rule(self, text: str) -> Optional[Tuple[str, Callable[[str], bool], str]]:
        """Return the first rule whose predicate accepts the line."""
        for rule in self.LINE_RULES:
            if rule[1](text):
                return rule
        return None

    def _on_fund_header(self, state: StatementState, text: str) -> Transition:
        fund_family = FUND_HEADER_PATTERN.sub("", text.strip()).strip() or text.strip()
        return Transition(replace(state, fund_family=fund_family))

    def _on_folio(self, state: StatementState, text: str) -> Transition:
        return Transition(replace(state, folio=parse_folio(text)))

    def _on_scheme(self, state: StatementState, text: str) -> Transition:
        return Transition(replace(state, scheme=parse_scheme(text)))

    def _on_closing_balance(self, state: StatementState, text: str) -> Transition:
        if not state.fund_family or state.folio is None or state.scheme is None:
            return Transition(
                state,
                warnings=(
                    f"Detected closing balance but missing context "
                    f"(fund: {state.fund_family or '-'}, "
                    f"folio: {state.folio.number if state.folio else '-'}, "
                    f"scheme: {state.scheme.name if state.scheme else '-'})",
                ),
            )

        values = self._extract_fields(text, {})
        if len(values) == len(CLOSING_BALANCE_FIELDS):
            return self._emit(state, values)

        if self.continuation_lines:
            pending = PendingBalance(values=values, remaining_lines=self.continuation_lines)
            return Transition(replace(state, pending=pending))

        return Transition(state, warnings=(self._incomplete_warning(state.scheme, values),))

    def _continue_pending(self, state: StatementState, text: str) -> Transition:
        pending = state.pending
        values = self._extract_fields(text, pending.values)
        if len(values) == len(CLOSING_BALANCE_FIELDS):
            return self._emit(replace(state, pending=None), values)

        remaining = pending.remaining_lines - 1
        if remaining <= 0:
            return Transition(
                replace(state, pending=None),
                warnings=(self._incomplete_warning(state.scheme, values),),
            )
        return Transition(
            replace(state, pending=PendingBalance(values=values, remaining_lines=remaining))
        )

    def _extract_fields(self, text: str, known: Dict[str, Decimal]) -> Dict[str, Decimal]:
        values = dict(known)
        for name, _, pattern in CLOSING_BALANCE_FIELDS:
            if name in values:
                continue
            amount = extract_label_amount(text, pattern)
            if amount is not None:
                values[name] = amount
        return values

    def _emit(self, state: StatementState, values: Dict[str, Decimal]) -> Transition:
        scheme = state.scheme
        holding = Holding(
            id=make_holding_id(state.fund_family, state.folio.number, scheme.name, scheme.isin),
            fund_family=state.fund_family,
            folio=state.folio.number,
            scheme_name=scheme.name,
            category=scheme.category,
            units=values["units"],
            nav=values["nav"],
            cost_value=values["cost_value"],
            market_value=values["market_value"],
        )
        # A scheme is consumed by exactly one closing balance
        return Transition(replace(state, scheme=None), holding=holding)

    @staticmethod
    def _incomplete_warning(
        scheme: Optional[SchemeContext], values: Dict[str, Decimal]
    ) -> str:
        missing = [label for name, label, _ in CLOSING_BALANCE_FIELDS if name not in values]
        name = scheme.name if scheme else "-"
        return (
            f'Incomplete closing balance data for scheme "{name}" '
            f"(missing: {', '.join(missing)})."
        )


def parse_statement_holdings(
    lines: Sequence[LineLike], continuation_lines: int = 0
) -> Tuple[List[Holding], List[str]]:
    """
    Parse holdings from statement lines, failing when none are found.

    Args:
        lines: Reconstructed statement lines.
        continuation_lines: See StatementParser.

    Returns:
        Tuple of (scrubbed holdings, warnings).

    Raises:
        NoHoldingsDetectedError: If no holding could be extracted.
    """
    holdings, warnings = StatementParser(continuation_lines=continuation_lines).parse(lines)
    if not holdings:
        raise NoHoldingsDetectedError()
    return holdings, warnings
