"""Fixed list of benchmark indices and their symbols per provider."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BenchmarkIndex:
    name: str
    yahoo_symbol: str
    finnhub_symbol: Optional[str] = None  # ETF proxy, Finnhub quotes no raw indices


INDEX_CATALOG: tuple[BenchmarkIndex, ...] = (
    BenchmarkIndex("S&P 500", "^GSPC", "SPY"),
    BenchmarkIndex("MSCI World", "URTH", "URTH"),
    BenchmarkIndex("Nasdaq 100", "^NDX", "QQQ"),
    BenchmarkIndex("Dow Jones", "^DJI", "DIA"),
    BenchmarkIndex("DAX 40", "^GDAXI"),
    BenchmarkIndex("Euro Stoxx 50", "^STOXX50E"),
    BenchmarkIndex("FTSE 100", "^FTSE"),
    BenchmarkIndex("Nikkei 225", "^N225"),
    BenchmarkIndex("Hang Seng", "^HSI"),
    BenchmarkIndex("CAC 40", "^FCHI"),
    BenchmarkIndex("Swiss Market", "^SSMI"),
    BenchmarkIndex("ASX 200", "^AXJO"),
    BenchmarkIndex("Shanghai Comp", "000001.SS"),
    BenchmarkIndex("KOSPI", "^KS11"),
    BenchmarkIndex("Russell 2000", "^RUT", "IWM"),
    BenchmarkIndex("FTSE MIB", "FTSEMIB.MI"),
    BenchmarkIndex("TSX Composite", "^GSPTSE"),
)
