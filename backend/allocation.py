import logging
import math
import re
from typing import List, Optional, Union

from schemas import (
    ASSET_LABELS,
    ASSET_SHORT_LABELS,
    TICKER_PATTERN,
    AssetAllocation,
    ChartRow,
    Holding,
    Portfolio,
    PortfolioValidation,
)
from settings import MAX_HOLDINGS

logger = logging.getLogger(__name__)

# Holdings may carry decimals; allocations are whole-percent inputs and compare exactly.
HOLDINGS_TOLERANCE = 0.01

_TICKER_RE = re.compile(TICKER_PATTERN)


class HoldingError(ValueError):
    """An add-holding action was rejected; the message is shown to the user."""


def allocation_total(alloc: AssetAllocation) -> float:
    return sum(getattr(alloc, key) for key in ASSET_LABELS)


def is_allocation_complete(alloc: AssetAllocation) -> bool:
    return allocation_total(alloc) == 100


def holdings_total(holdings: List[Holding]) -> float:
    return sum(h.percentage for h in holdings)


def holdings_match_target(holdings: List[Holding], target: float) -> bool:
    # An empty breakdown is optional and always valid
    if not holdings:
        return True
    return abs(holdings_total(holdings) - target) < HOLDINGS_TOLERANCE


def holdings_mismatch_message(holdings: List[Holding], target: float) -> Optional[str]:
    """Explain why a non-empty breakdown does not reconcile, or None if it does."""
    if holdings_match_target(holdings, target):
        return None
    total = holdings_total(holdings)
    msg = (
        f"The sum of specific holdings ({total:g}%) must match the "
        f"asset class allocation ({target:g}%)."
    )
    if total < target:
        msg += " Please add more holdings or an 'OTHER' category."
    elif total > target:
        msg += " Please reduce allocations."
    return msg


def is_submittable(portfolio: Portfolio) -> bool:
    current = portfolio.current_allocation
    return (
        is_allocation_complete(current)
        and is_allocation_complete(portfolio.desired_allocation)
        and holdings_match_target(portfolio.etf_holdings, current.mutual_funds)
        and holdings_match_target(portfolio.stock_holdings, current.stocks)
    )


def validate_portfolio(portfolio: Portfolio) -> PortfolioValidation:
    current = portfolio.current_allocation
    desired = portfolio.desired_allocation
    current_total = allocation_total(current)
    desired_total = allocation_total(desired)
    etf_valid = holdings_match_target(portfolio.etf_holdings, current.mutual_funds)
    stock_valid = holdings_match_target(portfolio.stock_holdings, current.stocks)

    messages: List[str] = []
    if current_total != 100:
        messages.append(f"Current allocation totals {current_total:g}%; it must equal 100%.")
    if desired_total != 100:
        messages.append(f"Desired allocation totals {desired_total:g}%; it must equal 100%.")
    for label, holdings, target in (
        ("Mutual Funds / ETFs", portfolio.etf_holdings, current.mutual_funds),
        ("Individual Stocks", portfolio.stock_holdings, current.stocks),
    ):
        hint = holdings_mismatch_message(holdings, target)
        if hint:
            messages.append(f"{label}: {hint}")

    return PortfolioValidation(
        current_total=current_total,
        desired_total=desired_total,
        current_complete=current_total == 100,
        desired_complete=desired_total == 100,
        etf_total=holdings_total(portfolio.etf_holdings),
        stock_total=holdings_total(portfolio.stock_holdings),
        etf_valid=etf_valid,
        stock_valid=stock_valid,
        submittable=current_total == 100 and desired_total == 100 and etf_valid and stock_valid,
        messages=messages,
    )


def normalize_ticker(raw: str) -> str:
    return raw.strip().upper()


def is_valid_ticker(ticker: str) -> bool:
    return bool(_TICKER_RE.match(ticker))


def _parse_percentage(value: Union[float, int, str, None]) -> float:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return math.nan
    if value is None:
        return math.nan
    return float(value)


def add_holding(
    holdings: List[Holding],
    ticker: str,
    percentage: Union[float, str],
    max_holdings: int = MAX_HOLDINGS,
) -> List[Holding]:
    """Return a new list with the holding appended.

    Raises HoldingError for a bad ticker, a duplicate, a full list or a
    non-positive percentage. The input list is never modified.
    """
    formatted = normalize_ticker(ticker or "")
    if not formatted:
        raise HoldingError("Enter a ticker symbol.")
    if not is_valid_ticker(formatted):
        raise HoldingError("Invalid ticker format (e.g. AAPL).")
    if any(h.ticker == formatted for h in holdings):
        raise HoldingError("Ticker already added.")
    if len(holdings) >= max_holdings:
        raise HoldingError(f"Maximum {max_holdings} holdings allowed.")
    pct = _parse_percentage(percentage)
    if not math.isfinite(pct) or pct <= 0:
        raise HoldingError("Enter a valid percentage.")

    logger.debug("adding holding %s (%s%%)", formatted, pct)
    return [*holdings, Holding(ticker=formatted, percentage=pct)]


def remove_holding(holdings: List[Holding], ticker: str) -> List[Holding]:
    formatted = normalize_ticker(ticker)
    return [h for h in holdings if h.ticker != formatted]


def allocation_chart(current: AssetAllocation, desired: AssetAllocation) -> List[ChartRow]:
    return [
        ChartRow(
            key=key,
            name=ASSET_SHORT_LABELS[key],
            full_name=label,
            current=getattr(current, key) or 0,
            desired=getattr(desired, key) or 0,
        )
        for key, label in ASSET_LABELS.items()
    ]
