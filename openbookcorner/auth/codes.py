"""Email verification code helpers.

Codes are six random digits. Only an HMAC of ``email:code`` keyed by the
server secret is stored, so a leaked table cannot be replayed and a code
issued for one address never matches another.
"""

import hashlib
import hmac as _hmac
import secrets

CODE_LENGTH = 6


def generate_code() -> str:
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def hash_code(email: str, code: str, secret_key: str) -> str:
    payload = f"{email.lower()}:{code}"
    return _hmac.new(secret_key.encode(), payload.encode(), hashlib.sha256).hexdigest()


def verify_code(email: str, code: str, code_hash: str, secret_key: str) -> bool:
    return _hmac.compare_digest(hash_code(email, code, secret_key), code_hash)
