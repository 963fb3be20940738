"""Personal data redaction for statement text."""

import re

CARD_TOKEN = "[NÚMERO DE TARJETA REDACTADO]"
ACCOUNT_TOKEN = "[NÚMERO DE CUENTA REDACTADO]"
CLABE_TOKEN = "[CLABE REDACTADA]"
EMAIL_TOKEN = "[CORREO REDACTADO]"
NAME_TOKEN = "[NOMBRE REDACTADO]"

CARD_DIGITS = range(13, 17)
CLABE_DIGITS = 18
ACCOUNT_DIGITS = range(10, 21)

# A maximal run of digit groups joined by single spaces or hyphens. The
# guards keep a match from starting or ending inside a longer run.
DIGIT_RUN_RE = re.compile(r"(?<!\d)(?<!\d[ -])\d+(?:[ -]\d+)*(?![ -]?\d)")
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
TITLEHOLDER_RE = re.compile(
    r"Titular:?\s*[A-ZÁÉÍÓÚÑ][a-záéíóúñ]+\s+[A-ZÁÉÍÓÚÑ][a-záéíóúñ]+"
    r"(?:\s+[A-ZÁÉÍÓÚÑ][a-záéíóúñ]+)?"
)


def _identifier_token(run: str) -> str | None:
    """Marker for a digit run that identifies a card, CLABE or account."""
    groups = re.split(r"[ -]", run)
    # "10 20 30 40 50" is a row of small figures, not an identifier
    if any(len(group) < 3 for group in groups[:-1]):
        return None

    digits = sum(len(group) for group in groups)
    if digits in CARD_DIGITS:
        return CARD_TOKEN
    if digits == CLABE_DIGITS:
        return CLABE_TOKEN
    if digits in ACCOUNT_DIGITS:
        return ACCOUNT_TOKEN
    return None


def _redact_digit_run(match: re.Match) -> str:
    return _identifier_token(match.group()) or match.group()


class PersonalDataRedactor:
    """Replace card numbers, CLABEs, account numbers, e-mails and titleholder names.

    Digit runs are classified by how many digits they hold, separators
    ignored: 13-16 is a card, 18 a CLABE, anything else from 10 to 20 an
    account. Grouped identifiers ("1234 567 890") are caught the same as
    contiguous ones.

    Replacements are one-way. Every marker is bracketed text that none of the
    patterns match, so redacting twice changes nothing.
    """

    def redact(self, text: str) -> str:
        text = DIGIT_RUN_RE.sub(_redact_digit_run, text)
        text = EMAIL_RE.sub(EMAIL_TOKEN, text)
        return TITLEHOLDER_RE.sub(f"Titular: {NAME_TOKEN}", text)
