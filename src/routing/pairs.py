"""Currency pair keys.

Pure functions -- no state, no I/O. A pair key is the two currency codes
sorted lexicographically and joined with ``/``, so ``EUR/SGD`` and
``SGD/EUR`` share one routing entry.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidCurrencyCode

USD = "USD"
SAME_CURRENCY_REASON = "Same currency"
DIRECT_REASON = "Direct pair - trades without USD decomposition"
EXOTIC_REASON = "Exotic pair - requires USD decomposition via two legs"


@dataclass(frozen=True)
class PairStatus:
    """Routing status of one (base, quote) cell of the pair matrix."""

    base: str
    quote: str
    is_direct: bool
    reason: str


def validate_currency(code: object) -> str:
    """Return *code* unchanged if it is a 3-letter alphabetic code.

    Raises:
        InvalidCurrencyCode: If the code is empty, not a string, or malformed.
    """
    if not isinstance(code, str) or len(code) != 3 or not (code.isascii() and code.isalpha()):
        raise InvalidCurrencyCode(code)
    return code


def normalize(a: str, b: str) -> str:
    """Canonical, order-independent key for the pair (a, b).

    Examples:
        >>> normalize("SGD", "EUR")
        'EUR/SGD'
    """
    validate_currency(a)
    validate_currency(b)
    return "/".join(sorted((a, b)))


def split_pair(pair: str) -> tuple[str, str]:
    """Split ``"BASE/QUOTE"`` into its two validated codes."""
    parts = pair.split("/") if isinstance(pair, str) else []
    if len(parts) != 2:
        raise InvalidCurrencyCode(pair)
    return validate_currency(parts[0]), validate_currency(parts[1])


def format_pair(base: str, quote: str) -> str:
    """Quote-ordered pair string (not normalized)."""
    return f"{base}/{quote}"


def involves_usd(base: str, quote: str) -> bool:
    return USD in (base, quote)


def usd_first_order(currencies: list[str]) -> list[str]:
    """Sort currencies alphabetically with USD pinned first (matrix order)."""
    return sorted(currencies, key=lambda c: (c != USD, c))
