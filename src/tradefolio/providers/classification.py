"""Identifier rules used to pick the provider chain for an instrument."""

import re
from typing import Optional

from tradefolio.core.exceptions import ValidationError
from tradefolio.domain.models import Instrument, InstrumentKind

ISIN_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{9}[0-9]$")
TICKER_PATTERN = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=/^]{0,19}$")

# ISIN country prefixes quoted on the domestic exchange feed
DOMESTIC_ISIN_COUNTRIES = frozenset({"DE", "AT", "NL", "FR", "BE", "LU", "CH", "IT", "ES"})

# Ticker -> CoinGecko coin id
CRYPTO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "SOL": "solana",
    "DOGE": "dogecoin",
    "TRX": "tron",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "LTC": "litecoin",
    "BCH": "bitcoin-cash",
    "XLM": "stellar",
    "ALGO": "algorand",
    "VET": "vechain",
    "FIL": "filecoin",
    "SAND": "the-sandbox",
    "MANA": "decentraland",
    "APT": "aptos",
    "ARB": "arbitrum",
    "OP": "optimism",
    "NEAR": "near",
    "ICP": "internet-computer",
    "HBAR": "hedera-hashgraph",
    "QNT": "quant-network",
    "GRT": "the-graph",
    "AAVE": "aave",
    "SNX": "havven",
    "MKR": "maker",
    "COMP": "compound-governance-token",
    "SUSHI": "sushi",
    "CRV": "curve-dao-token",
}

CRYPTO_NAMES = frozenset({
    "bitcoin", "ethereum", "tether", "ripple", "cardano", "solana", "dogecoin",
    "polkadot", "avalanche", "chainlink", "uniswap", "litecoin", "stellar",
    "algorand", "vechain", "filecoin", "decentraland", "aptos", "arbitrum",
})

_PAIR_BASES = "BTC|ETH|USDT|BNB|XRP|ADA|SOL|DOGE|TRX|MATIC|AVAX|DOT|LINK"
CRYPTO_PAIR_PATTERN = re.compile(rf"^({_PAIR_BASES})[-/]?(USD|EUR|USDT|BTC|ETH)$")


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


def is_isin(value: Optional[str]) -> bool:
    """True for a well-formed 12-character ISIN."""
    value = normalize_identifier(value)
    return bool(value and ISIN_PATTERN.match(value))


def isin_country(value: Optional[str]) -> Optional[str]:
    """Two-letter country prefix of an ISIN, or None."""
    value = normalize_identifier(value)
    return value[:2] if value and is_isin(value) else None


def exchange_suffix(symbol: Optional[str]) -> Optional[str]:
    """Exchange suffix of a ticker like ``SAP.DE`` (returns ``DE``)."""
    symbol = normalize_identifier(symbol)
    if not symbol or "." not in symbol:
        return None
    return symbol.rsplit(".", 1)[1] or None


def crypto_base_symbol(symbol: str) -> str:
    """BTC, BTCUSD, BTC-USD and BTC/EUR all reduce to BTC."""
    upper = symbol.strip().upper()
    match = CRYPTO_PAIR_PATTERN.match(upper)
    if match:
        return match.group(1)
    return upper


def coingecko_id(instrument: Instrument) -> Optional[str]:
    """CoinGecko coin id for a crypto instrument, if known."""
    if instrument.symbol:
        coin = CRYPTO_IDS.get(crypto_base_symbol(instrument.symbol))
        if coin:
            return coin
    if instrument.name:
        words = set(re.findall(r"[a-z]+", instrument.name.lower()))
        for coin_id in CRYPTO_IDS.values():
            if coin_id in words:
                return coin_id
    return None


def is_crypto(instrument: Instrument) -> bool:
    symbol = normalize_identifier(instrument.symbol)
    if symbol and (symbol in CRYPTO_IDS or CRYPTO_PAIR_PATTERN.match(symbol)):
        return True
    if instrument.name and not instrument.isin:
        words = set(re.findall(r"[a-z]+", instrument.name.lower()))
        return bool(words & CRYPTO_NAMES)
    return False


def classify_instrument(instrument: Instrument) -> InstrumentKind:
    """
    Classify an instrument for provider selection.

    Raises:
        ValidationError: the instrument has neither a usable ticker nor a
            well-formed ISIN.
    """
    symbol = normalize_identifier(instrument.symbol)
    isin = normalize_identifier(instrument.isin)

    if isin is not None and not is_isin(isin):
        raise ValidationError(f"Malformed ISIN for {instrument.instrument_id}: {instrument.isin}")
    if symbol is not None and not TICKER_PATTERN.match(symbol):
        if isin is None:
            raise ValidationError(f"Malformed ticker for {instrument.instrument_id}: {instrument.symbol}")
        symbol = None
    if symbol is None and isin is None:
        raise ValidationError(f"Instrument {instrument.instrument_id} has no ticker or ISIN")

    if is_crypto(instrument):
        return InstrumentKind.CRYPTO
    if isin_country(isin) in DOMESTIC_ISIN_COUNTRIES:
        return InstrumentKind.DOMESTIC
    return InstrumentKind.GENERIC
