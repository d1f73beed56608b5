from functools import lru_cache

import bcrypt
from flask import current_app

# Fixed input for the stand-in hash compared against when no account matches
_DUMMY_PASSWORD = b"teamnest-dummy-password"

def _rounds() -> int:
    return int(current_app.config.get("BCRYPT_ROUNDS", 12))

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    # bcrypt expects bytes
    salt = bcrypt.gensalt(rounds=_rounds())
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")

@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds)).decode("utf-8")

def dummy_password_hash() -> str:
    """A real hash at the configured cost, so a miss costs the same as a wrong password."""
    return _dummy_hash(_rounds())

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8")
        )
    except ValueError:
        # malformed stored hash
        return False
