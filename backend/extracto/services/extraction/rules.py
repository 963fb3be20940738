"""Declarative text-repair tables for bank statements.

Each bank's table is an ordered list of rules applied left to right. Later
rules see the output of earlier ones, so order is part of the table.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import cached_property

from extracto.enums import BankType


@dataclass(frozen=True)
class Rule:
    """A single regex substitution."""

    pattern: str
    replacement: str | Callable[[re.Match], str]
    flags: int = 0

    @cached_property
    def regex(self) -> re.Pattern:
        return re.compile(self.pattern, self.flags)

    def apply(self, text: str) -> str:
        return self.regex.sub(self.replacement, text)


def apply_rules(text: str, rules: tuple[Rule, ...]) -> str:
    for rule in rules:
        text = rule.apply(text)
    return text


# Keyword containment checks, in priority order (first match wins)
BANK_KEYWORDS: tuple[tuple[BankType, tuple[str, ...]], ...] = (
    (BankType.HSBC, ("HSBC", "2NOW")),
    (BankType.BBVA, ("BBVA", "BANCOMER")),
    (BankType.SANTANDER, ("SANTANDER",)),
    (BankType.BANORTE, ("BANORTE",)),
    (BankType.CITIBANAMEX, ("BANAMEX", "CITIBANAMEX")),
)


def _comma_grouped(match: re.Match) -> str:
    return re.sub(r"[ .,]", ",", match.group())


# Amounts: thousands separator "," and decimal "."
NUMERIC_REJOIN_RULES = (
    # "1 234 567" / "1.234.567" -> "1,234,567". Only runs shaped like an
    # amount (1-3 leading digits without a leading zero, not continuing an
    # earlier digit group, then groups of 3) are touched, so identifiers
    # such as "1234 567 890" or CLABEs printed as "012 180 ..." keep their
    # digits together.
    Rule(r"(?<![\d.,])(?<!\d )(?:0|[1-9]\d{0,2})(?:[ .,]\d{3})+(?!\d)", _comma_grouped),
    # "1,234,56" / "1,234.56" -> "1,234.56"
    Rule(r"(?<=\d,\d{3})[,.](?=\d{2}(?!\d))", "."),
)

ABBREVIATION_RULES = (
    Rule(r"\bNo\.", "Número", re.IGNORECASE),
    Rule(r"\bNum\.", "Número", re.IGNORECASE),
    Rule(r"\bRef\.", "Referencia", re.IGNORECASE),
)

# Amounts whose separators were swapped by font substitution ("1.234,56")
AMOUNT_FORMAT_RULE = Rule(r"(?<![\d,.])(\d{1,3})[,.](\d{3})[,.](\d{2})(?!\d)", r"\1,\2.\3")

GENERIC_RULES = ABBREVIATION_RULES + NUMERIC_REJOIN_RULES


# Words rendered with a space between every letter
LETTER_SPACED_RULES = (
    Rule(r"\bC ?U ?E ?N ?T ?A\b", "CUENTA"),
    Rule(r"\bT ?A ?R ?J ?E ?T ?A\b", "TARJETA"),
    Rule(r"\bS ?A ?L ?D ?O\b", "SALDO"),
    Rule(r"\bC ?A ?R ?G ?O(?: ?(S))?\b", r"CARGO\g<1>"),
    Rule(r"\bP ?A ?G ?O(?: ?(S))?\b", r"PAGO\g<1>"),
    Rule(r"\bF ?E ?C ?H ?A\b", "FECHA"),
    Rule(r"\bH ?S ?B ?C\b", "HSBC"),
    Rule(r"\b2 ?N ?[O0] ?W\b", "2NOW"),
    Rule(r"\bP ?A ?S ?E ?O\b", "PASEO"),
    Rule(r"\bD ?E ?P ?O ?S ?I ?T ?O\b", "DEPÓSITO"),
    Rule(r"\bR ?E ?T ?I ?R ?O\b", "RETIRO"),
    Rule(r"\bI ?N ?T ?E ?R ?E ?S ?E ?S\b", "INTERESES"),
    Rule(r"\bT ?R ?A ?N ?S ?F ?E ?R ?E ?N ?C ?I ?A\b", "TRANSFERENCIA"),
)

# Glyph substitutions produced by HSBC's embedded font encoding.
# Longer tokens come before the shorter tokens they contain.
HSBC_GLYPH_RULES = (
    Rule(r"MOeEMEENcOb", "MOVIMIENTOS"),
    Rule(r"EMxORcANcEb", "IMPORTANTES"),
    Rule(r"DEbcREBdCEnN", "DISTRIBUCION"),
    Rule(r"ENDECADOREb", "INDICADORES"),
    Rule(r"BENEFECEOb", "BENEFICIOS"),
    Rule(r"BdENRObcRO", "BUENROSTRO"),
    Rule(r"ENcEREbEb", "INTERESES"),
    Rule(r"RECdÓAREb", "REALIZADAS"),
    Rule(r"cABACHENEb", "TABACHINES"),
    Rule(r"DEFEREDOb", "DIFERIDOS"),
    Rule(r"RECOBERcO", "RIGOBERTO"),
    Rule(r"MENbAÑEb", "MENSAJES"),
    Rule(r"xACARuAb", "PAGARIAS"),
    Rule(r"DEbCÓObE", "DESGLOSE"),
    Rule(r"REØdEREDO", "RESUMEN"),
    Rule(r"ÑARDENEb", "JARDINES"),
    Rule(r"CONiAÓEi", "GONZALEZ"),
    Rule(r"BAMBdEb", "BAMBUES"),
    Rule(r"cARÑEcA", "TARJETA"),
    Rule(r"xEREODO", "PERIODO"),
    Rule(r"miircoles", "Miércoles"),
    Rule(r"AbEO@DE", "PASEO DE"),
    Rule(r"þÓcEMO", "ULTIMO"),
    Rule(r"iAxOxAN", "ZAPOPAN"),
    Rule(r"COMxRAb", "COMPRAS"),
    Rule(r"NþMERO", "NUMERO"),
    Rule(r"CARCOb", "CARGOS"),
    Rule(r"CdENcA", "CUENTA"),
    Rule(r"bAÓDO", "SALDO"),
    Rule(r"MEbEb", "MESES"),
    Rule(r"xAbEO", "PASEO"),
    Rule(r"xADRE", "PADRE"),
    Rule(r"CObcO", "COSTO"),
    Rule(r"EoL@", "TOTAL"),
    Rule(r"HbBC", "HSBC"),
    Rule(r"EbcE", "ESTE"),
    Rule(r"CLUz", "PLUS"),
    Rule(r"2N¦", "2NOW"),
    Rule(r"xACO", "PAGO"),
    Rule(r"\bÑAÓ\b", "JAL"),
    Rule(r"\bÓOb\b", "LOS"),
    Rule(r"\bENc\b", "INT"),
    Rule(r"\bcdb\b", "TUS"),
    Rule(r"\bMNO\b", "MXN"),
    Rule(r"\bMoo\b", "Mar"),
    Rule(r"\bxz\b", "PERIODO"),
    Rule(r"\bUo\b", "No"),
    Rule(r"\bxRO", "PRO"),
    Rule(r"\bxA", "PA"),
    Rule(r"\bcx\b", "TP"),
)

# Currency and punctuation glyphs
HSBC_SYMBOL_RULES = (
    # Bracketed amounts are negative
    Rule(r"\[([-\d.,]+)\]", r"-\1"),
    Rule(r"\]\s*\[", " "),
    Rule(r"[\[\]]", ""),
    Rule(r"`", "'"),
    # "@" stands in for a space, except inside e-mail addresses
    Rule(r"@(?![A-Za-z0-9-]+\.[A-Za-z]{2,})", " "),
    Rule(r"E¤", "Edo"),
    Rule(r"¤", "-"),
    Rule(r"©", "("),
    Rule(r"Î", ")"),
    Rule(r"¨", "$"),
    Rule(r"Ø", "O"),
    # Digits
    Rule(r"(?<=\d)q|q(?=\d)", "9"),
    Rule(r"(?<=\d)k(?=\d)", "."),
)

HSBC_VOCABULARY_RULES = (
    Rule(r"PAGO MINIMO", "PAGO MÍNIMO", re.IGNORECASE),
    Rule(r"FECHA LIMITE", "FECHA LÍMITE", re.IGNORECASE),
)

BBVA_RULES = (
    Rule(r"\bTDC\b", "TARJETA DE CRÉDITO", re.IGNORECASE),
)

COMMON_RULES = ABBREVIATION_RULES + (AMOUNT_FORMAT_RULE,) + NUMERIC_REJOIN_RULES


BANK_RULES: dict[BankType, tuple[Rule, ...]] = {
    BankType.HSBC: (
        HSBC_GLYPH_RULES
        + HSBC_SYMBOL_RULES
        + LETTER_SPACED_RULES
        + HSBC_VOCABULARY_RULES
        + COMMON_RULES
    ),
    BankType.BBVA: BBVA_RULES + COMMON_RULES,
    BankType.SANTANDER: COMMON_RULES,
    BankType.BANORTE: COMMON_RULES,
    BankType.CITIBANAMEX: COMMON_RULES,
}


def rules_for(bank: BankType) -> tuple[Rule, ...]:
    """Ordered repair table for a bank, or the generic fallback."""
    return BANK_RULES.get(bank, GENERIC_RULES)
