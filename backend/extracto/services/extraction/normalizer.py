"""Deterministic repair of extracted bank-statement text."""

import logging
import re

from extracto.enums import BankType
from extracto.services.extraction.rules import (
    BANK_KEYWORDS,
    NUMERIC_REJOIN_RULES,
    apply_rules,
    rules_for,
)

logger = logging.getLogger(__name__)

HORIZONTAL_WHITESPACE_RE = re.compile(r"[^\S\n]+")
SPACE_AROUND_NEWLINE_RE = re.compile(r" *\n *")
NEWLINE_RUN_RE = re.compile(r"\n+")

# Unicode look-alikes mapped to ASCII
PUNCTUATION_TABLE = str.maketrans(
    {
        "\u2010": "-",  # hyphen
        "\u2011": "-",  # non-breaking hyphen
        "\u2012": "-",  # figure dash
        "\u2013": "-",  # en dash
        "\u2014": "-",  # em dash
        "\u2015": "-",  # horizontal bar
        "\u2212": "-",  # minus sign
        "\u2018": "'",
        "\u2019": "'",
        "\u201a": "'",
        "\u201b": "'",
        "\u2032": "'",  # prime
        "\u201c": '"',
        "\u201d": '"',
        "\u201e": '"',
        "\u201f": '"',
        "\u2033": '"',  # double prime
        "\u2026": "...",
    }
)

# Zero-width, bidi, soft hyphen and C0/C1 controls (newline excluded)
INVISIBLE_RE = re.compile(
    r"[\x00-\x08\x0e-\x1f\x7f-\x9f\u00ad\u200b-\u200f\u202a-\u202e\u2060-\u206f\ufeff]"
)


def _collapse_whitespace(text: str) -> str:
    text = HORIZONTAL_WHITESPACE_RE.sub(" ", text)
    text = SPACE_AROUND_NEWLINE_RE.sub("\n", text)
    text = NEWLINE_RUN_RE.sub("\n", text)
    return text.strip()


class BankTextNormalizer:
    """Canonicalize whitespace, punctuation and amounts, then apply bank repairs.

    Stages run in a fixed order and each one is total:

    1. whitespace runs -> one space, newline runs -> one newline
    2. Unicode dashes and curly quotes -> ASCII
    3. strip invisible and control characters
    4. rejoin amounts to the canonical ``1,234.56`` form
    5. identify the issuing bank
    6. apply the bank's repair table, or
    7. the generic fallback when no bank is identified
    8. collapse whitespace and rejoin amounts split by the repairs
    """

    def normalize(self, text: str, bank: BankType | None = None) -> str:
        """
        Normalize statement text.

        Args:
            text: Raw extracted text
            bank: Bank to repair for. Detected from the text when omitted.

        Returns:
            Normalized text
        """
        if not text:
            return ""

        text = _collapse_whitespace(text)
        text = text.translate(PUNCTUATION_TABLE)
        text = _collapse_whitespace(INVISIBLE_RE.sub("", text))
        text = apply_rules(text, NUMERIC_REJOIN_RULES)

        if bank is None:
            bank = self.detect_bank(text)

        text = self.apply_bank_specific(text, bank)
        # Repairs may leave doubled spaces inside amounts ("1@@234" -> "1  234"),
        # so amounts are rejoined once more after the final collapse
        return apply_rules(_collapse_whitespace(text), NUMERIC_REJOIN_RULES)

    def detect_bank(self, text: str) -> BankType:
        """Identify the issuing bank by keyword containment, first match wins."""
        upper = text.upper()
        for bank, keywords in BANK_KEYWORDS:
            if any(keyword in upper for keyword in keywords):
                return bank
        return BankType.UNKNOWN

    def apply_bank_specific(self, text: str, bank: BankType) -> str:
        """Apply the ordered repair table for a bank (generic fallback for Unknown)."""
        rules = rules_for(bank)
        logger.debug(f"Applying {len(rules)} repair rules for {bank}")
        return apply_rules(text, rules)
