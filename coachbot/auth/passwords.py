"""Password hashing — bcrypt with a per-password salt."""

import bcrypt

from coachbot.errors import ValidationError

PASSWORD_BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of its input.
PASSWORD_MAX_BYTES = 72


def hash_password(plaintext: str) -> str:
    """Hash a plaintext password into a ``$2b$<rounds>$...`` digest.

    Raises ``ValidationError`` for an empty password, or one longer than
    bcrypt can take, so signup fails closed.
    """
    if not plaintext:
        raise ValidationError("password is required")
    encoded = plaintext.encode("utf-8")
    if len(encoded) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"password must be at most {PASSWORD_MAX_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=PASSWORD_BCRYPT_ROUNDS)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plaintext: str, stored: str | None) -> bool:
    """Check *plaintext* against a digest produced by ``hash_password``.

    A missing digest (federated account) or a malformed one never matches.
    """
    if not stored or not plaintext:
        return False
    encoded = plaintext.encode("utf-8")
    if len(encoded) > PASSWORD_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, stored.encode("utf-8"))
    except ValueError:
        return False
