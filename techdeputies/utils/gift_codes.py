"""Gift card code generation and normalization."""
import re
import secrets

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 16
GROUP_SIZE = 4

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def generate_code() -> str:
    """Return a new normalized code (no dashes)."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    """Uppercase and drop everything but letters and digits."""
    return _NON_ALNUM.sub("", (code or "").upper())


def format_code(code: str) -> str:
    """Render a code in dash-separated groups of four, e.g. ABCD-EFGH-JKLM-NPQR."""
    clean = normalize_code(code)
    return "-".join(clean[i:i + GROUP_SIZE] for i in range(0, len(clean), GROUP_SIZE))
