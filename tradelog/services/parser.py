"""
Trade message parser.

Turns one Telegram message from the trading bot into a TradeRecord, or None
when the message is not a closed position. The bot has changed its
templates several times (Swedish and English, with and without emoji), so
every field is read by a prioritized list of small extractors: the first
one that matches wins.

Example of a message the parser accepts:

    📉 POSITION STÄNGD
    💰 Symbol: BTC-USDT
    📉 Ingångspris: $0.800000
    📉 Utgångspris: $0.673000
    📉 PnL: $-0.0117
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from tradelog.config.logging import logger
from tradelog.core.models import RawMessage, TradeAction, TradeRecord, from_epoch

Extractor = Callable[[str], Optional[str]]

# Phrases that always mean a position was closed
CLOSE_PHRASES = ("POSITION STÄNGD", "POSITION CLOSED", "POSITION STANGD")
# Phrases that mean a position was opened; these never carry realized P/L
OPEN_PHRASES = ("POSITION ÖPPNAD", "POSITION OPENED", "POSITION OPEN", "NY POSITION")
# Explicit P/L labels; stop loss / take profit levels on open messages are not P/L
PNL_MARKERS = re.compile(
    r"\bP\s*(?:n|/|&)\s*L\s*:|\bvinst\s*:|\bförlust\s*:|(?<!take[ -])\bprofit\s*:|(?<!stop[ -])\bloss\s*:",
    re.IGNORECASE,
)
DIRECTION_EMOJIS = ("📈", "📉", "✅", "❌")

PROFIT_WORDS = re.compile(r"(?<!take[ -])\b(?:vinst|profit)\b", re.IGNORECASE)
LOSS_WORDS = re.compile(r"(?<!stop[ -])\b(?:förlust|loss)\b", re.IGNORECASE)
HEADER_WIN = re.compile(r"(?:📈|✅|🟢)\s*POSITION", re.IGNORECASE)
HEADER_LOSS = re.compile(r"(?:📉|❌|🔴)\s*POSITION", re.IGNORECASE)

PAIR = r"([A-Za-z0-9]+(?:[-/_][A-Za-z0-9]+)?)"
AMOUNT = r"([+-])?\s*\$?\s*([+-]?\d[\d,]*(?:\.\d+)?)"
# quote currencies the bot trades against; "STOP-LOSS" and the like are not pairs
QUOTES = ("USDT", "USDC", "BUSD", "USD", "BTC", "ETH", "EUR", "SEK")
BARE_PAIR = re.compile(
    r"(?<![A-Za-z0-9])([A-Z0-9]{2,}-(?:%s))(?![A-Za-z0-9])" % "|".join(QUOTES)
)

# 1,234,567.89 (a leading zero group is never a thousands grouping)
THOUSANDS = re.compile(r"[1-9]\d{0,2}(?:,\d{3})+(?:\.\d+)?")
# 0,673 or 12,5 as written in Swedish templates
DECIMAL_COMMA = re.compile(r"\d+,\d+")


def labelled(*labels: str, value: str = AMOUNT) -> Extractor:
    """Builds an extractor for `<label>: <value>`; returns the value text with its sign."""
    pattern = re.compile(
        r"\b(?:%s)\s*:\s*%s" % ("|".join(labels), value),
        re.IGNORECASE,
    )

    def extract(text: str) -> Optional[str]:
        match = pattern.search(text)
        if not match:
            return None
        groups = [g for g in match.groups() if g]
        return "".join(groups) if groups else None

    return extract


def prefixed(prefix: str, value: str = PAIR) -> Extractor:
    pattern = re.compile(re.escape(prefix) + r"\s*" + value)

    def extract(text: str) -> Optional[str]:
        match = pattern.search(text)
        return match.group(1) if match else None

    return extract


def bare_pair(text: str) -> Optional[str]:
    """Last resort: the first upper-case BASE-QUOTE token anywhere in the text."""
    match = BARE_PAIR.search(text)
    return match.group(1) if match else None


SYMBOL_EXTRACTORS: List[Extractor] = [
    labelled("Symbol", value=PAIR),
    labelled("Valuta", value=PAIR),
    labelled("Par", value=PAIR),
    labelled("Pair", value=PAIR),
    prefixed("💰"),
    bare_pair,
]

PRICE_EXTRACTORS: List[Extractor] = [
    labelled("Utgångspris", "Utgangspris"),
    labelled("Stängningspris", "Stangningspris"),
    labelled(r"Exit\s*price", r"Close\s*price"),
]

QUANTITY_EXTRACTORS: List[Extractor] = [
    labelled("Storlek", "Antal", "Kvantitet"),
    labelled("Size", "Quantity", "Qty"),
]

# (extractor, is_loss_label); loss labels often hold unsigned magnitudes
PNL_EXTRACTORS: List[Tuple[Extractor, bool]] = [
    (labelled(r"P\s*n\s*L", r"P\s*/\s*L", r"P\s*&\s*L"), False),
    (labelled("Vinst"), False),
    (labelled(r"(?<!take[ -])Profit"), False),
    (labelled("Förlust", "Forlust"), True),
    (labelled(r"(?<!stop[ -])Loss"), True),
]


def first_match(extractors: Iterable[Extractor], text: str) -> Optional[str]:
    for extract in extractors:
        value = extract(text)
        if value:
            return value
    return None


def to_decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    cleaned = value.replace(" ", "").rstrip(",")
    # the label sign and the number sign may both be present ("-" + "-5")
    negative = cleaned.count("-") % 2 == 1
    cleaned = cleaned.replace("-", "").replace("+", "")
    if "," in cleaned:
        if THOUSANDS.fullmatch(cleaned):
            cleaned = cleaned.replace(",", "")
        elif DECIMAL_COMMA.fullmatch(cleaned):
            cleaned = cleaned.replace(",", ".")
        else:
            # "1,5.3" and friends: ambiguous, skip rather than guess
            return None
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return -number if negative else number


def normalize_symbol(raw: str) -> str:
    return re.sub(r"[/_]", "-", raw.strip()).upper()


class TradeParser:
    """
    Stateless parser; indicator vocabularies can be overridden per instance.
    parse() never raises, unparseable messages come back as None.
    """

    def __init__(
        self,
        close_phrases: Sequence[str] = CLOSE_PHRASES,
        open_phrases: Sequence[str] = OPEN_PHRASES,
        direction_emojis: Sequence[str] = DIRECTION_EMOJIS,
    ):
        self.close_phrases = tuple(p.upper() for p in close_phrases)
        self.open_phrases = tuple(p.upper() for p in open_phrases)
        self.direction_emojis = tuple(direction_emojis)

    def is_close_message(self, text: str) -> bool:
        upper = text.upper()
        if any(phrase in upper for phrase in self.close_phrases):
            return True
        if any(phrase in upper for phrase in self.open_phrases):
            return False
        if PNL_MARKERS.search(text):
            return True
        return any(emoji in text for emoji in self.direction_emojis) and bool(
            first_match(PRICE_EXTRACTORS, text)
        )

    @staticmethod
    def classify(text: str, profit_loss: Optional[Decimal]) -> TradeAction:
        if PROFIT_WORDS.search(text):
            return TradeAction.CLOSE_WIN
        if LOSS_WORDS.search(text):
            return TradeAction.CLOSE_LOSS
        if profit_loss is not None and profit_loss > 0:
            return TradeAction.CLOSE_WIN
        if profit_loss is not None and profit_loss < 0:
            return TradeAction.CLOSE_LOSS
        if HEADER_WIN.search(text):
            return TradeAction.CLOSE_WIN
        if HEADER_LOSS.search(text):
            return TradeAction.CLOSE_LOSS
        return TradeAction.CLOSE

    @staticmethod
    def extract_profit_loss(text: str) -> Optional[Decimal]:
        for extract, is_loss_label in PNL_EXTRACTORS:
            amount = to_decimal(extract(text))
            if amount is None:
                continue
            return -abs(amount) if is_loss_label else amount
        return None

    def parse(self, message: RawMessage) -> Optional[TradeRecord]:
        text = message.text
        if not text or not self.is_close_message(text):
            return None

        raw_symbol = first_match(SYMBOL_EXTRACTORS, text)
        if not raw_symbol:
            return None

        price = to_decimal(first_match(PRICE_EXTRACTORS, text))
        if price is None or price < 0:
            return None

        profit_loss = self.extract_profit_loss(text)
        quantity = to_decimal(first_match(QUANTITY_EXTRACTORS, text))
        if quantity is not None and quantity < 0:
            quantity = None

        try:
            return TradeRecord(
                symbol=normalize_symbol(raw_symbol),
                action=self.classify(text, profit_loss),
                price=price,
                quantity=quantity,
                profit_loss=profit_loss,
                timestamp=from_epoch(message.posted_at),
                external_message_id=message.external_id,
                raw_message=text,
            )
        except (ValueError, OverflowError, OSError) as e:
            logger.debug(f"Message {message.external_id} rejected: {e}")
            return None

    def parse_batch(self, messages: Iterable[RawMessage]) -> List[TradeRecord]:
        trades = []
        skipped = 0
        for message in messages:
            trade = self.parse(message)
            if trade is None:
                skipped += 1
                continue
            trades.append(trade)
        logger.debug(f"Parsed {len(trades)} trades, skipped {skipped} messages")
        return trades


default_parser = TradeParser()

def parse(message: RawMessage) -> Optional[TradeRecord]:
    return default_parser.parse(message)
