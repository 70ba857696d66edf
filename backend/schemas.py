from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

TICKER_PATTERN = r"^[A-Z.]{1,6}$"


class RiskTolerance(str, Enum):
    conservative = "Conservative"
    moderate = "Moderate"
    aggressive = "Aggressive"
    speculative = "Speculative"


class InvestmentHorizon(str, Enum):
    short = "1-3 Years"
    medium = "3-10 Years"
    long = "10-30 Years"
    retirement = "30+ Years"


class Strategy(str, Enum):
    dca = "Dollar Cost Averaging"
    lump_sum = "Lump Sum Immediate"
    value = "Value Investing"
    growth = "Growth Investing"
    income = "Income / Dividend"
    preservation = "Capital Preservation"


# Field order here is the display order everywhere (prompt, chart, forms).
ASSET_LABELS: Dict[str, str] = {
    "fixed_income": "Fixed Income (Bonds/CDs)",
    "mutual_funds": "Mutual Funds / ETFs",
    "stocks": "Individual Stocks",
    "cash": "Cash / High Yield Savings",
    "crypto": "Crypto / Alt Assets",
    "other": "Real Estate / Other",
}

ASSET_SHORT_LABELS: Dict[str, str] = {
    "fixed_income": "Fixed Inc",
    "mutual_funds": "Funds/ETF",
    "stocks": "Stocks",
    "cash": "Cash",
    "crypto": "Crypto",
    "other": "RE/Other",
}

DEFAULT_WATCHLIST = "SPY, QQQ, GLD, NVDA"


class AssetAllocation(BaseModel):
    fixed_income: float = Field(0, ge=0, allow_inf_nan=False)
    mutual_funds: float = Field(0, ge=0, allow_inf_nan=False)
    stocks: float = Field(0, ge=0, allow_inf_nan=False)
    cash: float = Field(0, ge=0, allow_inf_nan=False)
    crypto: float = Field(0, ge=0, allow_inf_nan=False)
    other: float = Field(0, ge=0, allow_inf_nan=False)


class Holding(BaseModel):
    ticker: str = Field(..., pattern=TICKER_PATTERN)
    percentage: float = Field(..., gt=0, allow_inf_nan=False)

    @field_validator("ticker", mode="before")
    @classmethod
    def upper_ticker(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


def _unique_tickers(holdings: List[Holding]) -> List[Holding]:
    seen = set()
    for h in holdings:
        if h.ticker in seen:
            raise ValueError(f"duplicate ticker {h.ticker}")
        seen.add(h.ticker)
    return holdings


class Portfolio(BaseModel):
    total_asset_value: float = Field(100000, gt=0, allow_inf_nan=False)
    risk_tolerance: RiskTolerance = RiskTolerance.moderate
    horizon: InvestmentHorizon = InvestmentHorizon.medium
    strategy: Strategy = Strategy.dca
    current_allocation: AssetAllocation = Field(default_factory=AssetAllocation)
    desired_allocation: AssetAllocation = Field(default_factory=AssetAllocation)
    watchlist: str = DEFAULT_WATCHLIST
    etf_holdings: List[Holding] = []
    stock_holdings: List[Holding] = []

    @field_validator("etf_holdings", "stock_holdings")
    @classmethod
    def unique_tickers(cls, v):
        return _unique_tickers(v)


class PortfolioUpdate(BaseModel):
    total_asset_value: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    risk_tolerance: Optional[RiskTolerance] = None
    horizon: Optional[InvestmentHorizon] = None
    strategy: Optional[Strategy] = None
    current_allocation: Optional[AssetAllocation] = None
    desired_allocation: Optional[AssetAllocation] = None
    watchlist: Optional[str] = None


class HoldingKind(str, Enum):
    etf = "etf"
    stock = "stock"


class HoldingRequest(BaseModel):
    ticker: str
    # Raw form input; parsed by allocation.add_holding
    percentage: Union[float, str]


class PortfolioValidation(BaseModel):
    current_total: float
    desired_total: float
    current_complete: bool
    desired_complete: bool
    etf_total: float
    stock_total: float
    etf_valid: bool
    stock_valid: bool
    submittable: bool
    messages: List[str] = []


class ChartRow(BaseModel):
    key: str
    name: str
    full_name: str
    current: float
    desired: float


# Display nodes


class Segment(BaseModel):
    text: str
    strong: bool = False


class HeadingNode(BaseModel):
    type: Literal["heading"] = "heading"
    level: int
    text: str


class ParagraphNode(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    segments: List[Segment]


class BulletNode(BaseModel):
    type: Literal["bullet"] = "bullet"
    segments: List[Segment]

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.segments)


class DisclaimerNode(BaseModel):
    type: Literal["disclaimer"] = "disclaimer"
    text: str


class SpacerNode(BaseModel):
    type: Literal["spacer"] = "spacer"


class TableNode(BaseModel):
    type: Literal["table"] = "table"
    header: List[str]
    rows: List[List[str]]


class LineNode(BaseModel):
    type: Literal["line"] = "line"
    text: str


DisplayNode = Annotated[
    Union[HeadingNode, ParagraphNode, BulletNode, DisclaimerNode, SpacerNode, TableNode, LineNode],
    Field(discriminator="type"),
]


class ChatMessage(BaseModel):
    id: str
    role: Literal["user", "assistant"]
    text: str


class ChatMessageView(ChatMessage):
    nodes: List[DisplayNode] = []


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class SessionView(BaseModel):
    id: str
    step: Literal["input", "analysis"]
    is_loading: bool
    portfolio: Portfolio
    validation: PortfolioValidation


class ReportView(BaseModel):
    session_id: str
    markdown: str
    nodes: List[DisplayNode]
    chart: List[ChartRow]
    portfolio: Portfolio
