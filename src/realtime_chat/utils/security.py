"""
Token, handle and password helpers.

Session tokens are the only bearer credential for both HTTP and realtime
access, so they come from 'secrets' with 32 bytes (256 bits) of entropy.
Passwords are hashed with 'bcrypt'; the raw password never reaches storage.
"""

import secrets

import bcrypt

TOKEN_BYTES = 32
UNIQUE_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
UNIQUE_ID_LENGTH = 6
BCRYPT_ROUNDS = 10


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def generate_unique_id() -> str:
    """Return a human-shareable handle such as '#K3X9QA'."""
    return "#" + "".join(secrets.choice(UNIQUE_ID_ALPHABET) for _ in range(UNIQUE_ID_LENGTH))


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False
