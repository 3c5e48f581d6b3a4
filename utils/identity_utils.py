"""
Identity normalisation helpers shared by the resolver and the source adapters.

Identifiers are never stored in clear as lookup keys: emails and phones are
normalised and hashed, fingerprints are already derived values and are kept
verbatim.
"""

import hashlib
import re
from typing import Any, Dict, Optional, Tuple

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
MIN_PHONE_LENGTH = 7
MAX_NAME_LENGTH = 100


def hash_identity_value(value: str) -> str:
    """SHA-256 hex digest of the trimmed, lower-cased value."""
    return hashlib.sha256(value.strip().lower().encode('utf-8')).hexdigest()


def normalize_phone(phone: str) -> str:
    """Strip everything but digits: '+1 (555) 010-2030' -> '15550102030'."""
    return re.sub(r'\D', '', phone or '')


def deterministic_id(*parts: Optional[Any]) -> str:
    """
    Build a stable dedup key from the given parts.

    Parts are joined with '|' (None becomes an empty string) and hashed, so the
    same logical occurrence always produces the same 32-character key.
    """
    joined = '|'.join('' if part is None else str(part) for part in parts)
    return hashlib.sha256(joined.encode('utf-8')).hexdigest()[:32]


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def _clean_name(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value[:MAX_NAME_LENGTH] or None


def sanitize_contact(raw: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """
    Clean an untrusted contact dict into {email, phone, first_name, last_name}.

    Invalid values are dropped, not raised: a malformed email simply becomes
    None so the rest of the payload can still be used.
    """
    raw = raw or {}
    cleaned: Dict[str, Optional[str]] = {
        'email': None,
        'phone': None,
        'first_name': None,
        'last_name': None,
    }

    email = raw.get('email')
    if isinstance(email, str) and is_valid_email(email):
        cleaned['email'] = email.strip().lower()

    phone = raw.get('phone')
    if isinstance(phone, (str, int)):
        phone = str(phone).strip()
        if len(normalize_phone(phone)) >= MIN_PHONE_LENGTH:
            cleaned['phone'] = phone

    cleaned['first_name'] = _clean_name(raw.get('first_name'))
    cleaned['last_name'] = _clean_name(raw.get('last_name'))
    return cleaned


def split_full_name(name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split 'Jane Q Public' into ('Jane', 'Q Public')."""
    if not name or not name.strip():
        return None, None
    tokens = name.split()
    first = tokens[0]
    last = ' '.join(tokens[1:]) or None
    return first, last
