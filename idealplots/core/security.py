# idealplots/core/security.py
import secrets
import string

import bcrypt

from idealplots.core.config import settings

MIN_CREDENTIAL_HASH_LENGTH = 60

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def hash_credential(plain: str, rounds: int | None = None) -> str:
    """bcrypt hash of a plaintext credential; always 60 characters."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def generate_verification_token(length: int = 32) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def generate_phone_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_temp_password(length: int = 12) -> str:
    return secrets.token_urlsafe(length)[:length]
