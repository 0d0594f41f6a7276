"""
Transaction type resolution for CAS transactions.

Maps an accumulated transaction description to either a financial
TransactionType or an administrative event label taken from the
``*** ... ***`` marker printed by the registrar.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from cas_extractor.models import TransactionType

logger = logging.getLogger(__name__)

STAMP_DUTY = "Stamp Duty"
STT_PAID = "STT Paid"
GENERIC_ADMINISTRATIVE = "Administrative"

# Inner marker text (lower-cased, whitespace collapsed) -> canonical label
CANONICAL_ADMIN_LABELS: Dict[str, str] = {
    "stamp duty": STAMP_DUTY,
    "stt paid": STT_PAID,
}

ADMIN_MARKER_PATTERN = re.compile(r"\*{3}\s*(.*?)\s*\*{3}", re.DOTALL)


@dataclass(frozen=True)
class TypeResolution:
    """
    Outcome of resolving a description.

    Attributes:
        transaction_type: Financial label or administrative marker text
        is_administrative: True for administrative events
        description: Description to store on the transaction
        category: Financial category, None for administrative events
    """
    transaction_type: str
    is_administrative: bool
    description: str
    category: Optional[TransactionType] = None


def _all_of(*patterns: str) -> Callable[[str], bool]:
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]
    return lambda text: all(p.search(text) for p in compiled)


def _any_of(*patterns: str) -> Callable[[str], bool]:
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]
    return lambda text: any(p.search(text) for p in compiled)


class TransactionTypeResolver:
    """
    Resolves descriptions to transaction types.

    Financial descriptions are matched against an ordered rule table; the
    first matching rule wins, so switch rules precede the generic purchase
    and redemption keywords that switch descriptions often contain.
    """

    # Order matters - more specific first
    FINANCIAL_RULES: List[Tuple[TransactionType, Callable[[str], bool]]] = [
        (TransactionType.SWITCH_OUT, _all_of(r"switch", r"\bout\b")),
        (TransactionType.SWITCH_IN, _all_of(r"switch", r"\bin\b")),
        (TransactionType.SIP, _any_of(r"systematic\s+investment", r"\bsip\b")),
        (TransactionType.REDEMPTION, _any_of(r"redemption")),
        (TransactionType.DIVIDEND, _any_of(r"dividend")),
        (TransactionType.PURCHASE, _any_of(r"purchase")),
    ]

    def resolve(self, description: str, amount: Optional[Decimal] = None) -> TypeResolution:
        """
        Resolve a transaction description.

        Args:
            description: Accumulated description text of the transaction.
            amount: Parsed amount, used for the fallback of unmatched rows.

        Returns:
            TypeResolution for the description.
        """
        text = " ".join(description.split()) if description else ""

        marker = ADMIN_MARKER_PATTERN.search(text)
        if marker:
            return self._resolve_administrative(marker)

        for tx_type, predicate in self.FINANCIAL_RULES:
            if predicate(text):
                return TypeResolution(tx_type.value, False, text, tx_type)

        if amount is not None and amount > 0:
            logger.debug(f"No type keyword in {text!r}, defaulting to Purchase")
            return TypeResolution(
                TransactionType.PURCHASE.value, False, text, TransactionType.PURCHASE
            )

        logger.warning(
            f"Unclassified transaction: description={text!r}, amount={amount}"
        )
        return TypeResolution(
            TransactionType.UNCLASSIFIED.value, False, text, TransactionType.UNCLASSIFIED
        )

    def _resolve_administrative(self, marker: re.Match) -> TypeResolution:
        inner = " ".join(marker.group(1).split())
        label = CANONICAL_ADMIN_LABELS.get(inner.lower(), inner) or GENERIC_ADMINISTRATIVE
        return TypeResolution(label, True, marker.group(0))


def resolve_transaction_type(description: str, amount: Optional[Decimal] = None) -> TypeResolution:
    """
    Convenience function to resolve a single description.

    Args:
        description: Transaction description text.
        amount: Parsed amount, if any.

    Returns:
        TypeResolution for the description.
    """
    return TransactionTypeResolver().resolve(description, amount)
