"""Heuristic line-item classifier for recognised receipt text.

The classifier walks the recognised text line by line and pairs each
item name with the price line that follows it. It keeps a single
"current" candidate:

- a *name line* starts with a letter followed by letters, digits,
  spaces or slashes. It flushes the current candidate (when it has a
  non-zero price) and starts a new one;
- a *price line* is an optional currency symbol, then ``<digits>.<2
  digits>``, then anything. It becomes the price of the current
  candidate when that candidate is named and still unpriced. Otherwise
  it is taken as the declared total, overwriting any earlier one, which
  is how a trailing grand total line is told apart from an item price;
- every other line is ignored.

Known limitations: this is a best-effort heuristic. Items without a
price line directly below them are dropped, and layouts that put all
names before all prices (or prices on the same line as names) are
misparsed. The declared total is reported as found and is never
checked against the sum of the items. Name detection is ASCII-only on
the first two characters: ``Crème fraîche`` is kept whole, but a name
starting with a non-ASCII letter (``Édam``, ``Ölkännchen``) or with an
accented second letter (``Aïoli``) is not a name line, so that item is
dropped and its price is read as the declared total.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9\s/]+")
PRICE_PATTERN = re.compile(r"^[$€£¥₹]?(?P<amount>\d+\.\d{2})")


@dataclass(frozen=True)
class ParsedItem:
    name: str
    price: float


def is_name_line(line: str) -> bool:
    return NAME_PATTERN.match(line) is not None


def parse_price_line(line: str) -> Optional[float]:
    """Return the amount on a price line, or None for any other line."""
    match = PRICE_PATTERN.match(line)
    if match is None:
        return None
    return float(match.group("amount"))


def classify(raw_text: str) -> Tuple[List[ParsedItem], float]:
    """Split recognised text into ``(items, declared_total)``.

    Items keep input order. Empty input yields ``([], 0.0)``.
    """
    items: List[ParsedItem] = []
    declared_total = 0.0
    items_sum = 0.0

    current_name: Optional[str] = None
    current_price: Optional[float] = None

    for raw_line in (raw_text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if is_name_line(line):
            if current_name is not None and current_price:
                items.append(ParsedItem(name=current_name, price=current_price))
                items_sum += current_price
            current_name = line
            current_price = None
            continue

        price = parse_price_line(line)
        if price is None:
            continue
        if current_name is not None and current_price is None:
            current_price = price
        else:
            declared_total = price

    if current_name is not None and current_price:
        items.append(ParsedItem(name=current_name, price=current_price))
        items_sum += current_price

    logger.debug(
        "Classified %d items (sum %.2f, declared total %.2f)", len(items), items_sum, declared_total
    )
    return items, declared_total


__all__ = ["ParsedItem", "classify", "is_name_line", "parse_price_line"]
