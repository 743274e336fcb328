"""
Fluxi Security Utilities

Encryption for channel credentials and JWT handling.
"""

import base64
import hashlib
from datetime import datetime, timedelta
from typing import Any

from cryptography.fernet import Fernet
from jose import JWTError, jwt

from core.config import DEFAULT_ENCRYPTION_KEY, get_settings

settings = get_settings()

# Credential keys that are never stored in clear text
SECRET_CREDENTIAL_FIELDS = frozenset({"api_key", "access_key", "access_token", "consumer_secret", "password"})

# Fernet encryption for channel credentials
# IMPORTANT: Dev key must be deterministic so all processes share the same key.
if settings.encryption_key == DEFAULT_ENCRYPTION_KEY:
    _dev_key = base64.urlsafe_b64encode(hashlib.sha256(b"fluxi-dev-key-not-for-production").digest())
    _fernet = Fernet(_dev_key)
else:
    _fernet = Fernet(settings.encryption_key.encode())


def encrypt(plaintext: str) -> str:
    """Encrypt sensitive data (API keys, access tokens)."""
    return _fernet.encrypt(plaintext.encode()).decode()


def decrypt(ciphertext: str) -> str:
    """Decrypt sensitive data."""
    return _fernet.decrypt(ciphertext.encode()).decode()


def seal_credentials(credentials: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a channel credential map with secret fields encrypted."""
    sealed: dict[str, Any] = {}
    for key, value in credentials.items():
        if key in SECRET_CREDENTIAL_FIELDS and isinstance(value, str) and value:
            sealed[key] = encrypt(value)
        else:
            sealed[key] = value
    return sealed


def unseal_credentials(credentials: dict[str, Any] | None) -> dict[str, Any]:
    """Inverse of seal_credentials."""
    unsealed: dict[str, Any] = {}
    for key, value in (credentials or {}).items():
        if key in SECRET_CREDENTIAL_FIELDS and isinstance(value, str) and value:
            unsealed[key] = decrypt(value)
        else:
            unsealed[key] = value
    return unsealed


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    runtime_settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=24))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, runtime_settings.jwt_secret, algorithm=runtime_settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a local JWT. Returns None when invalid or expired."""
    runtime_settings = get_settings()
    try:
        return jwt.decode(
            token,
            runtime_settings.jwt_secret,
            algorithms=[runtime_settings.jwt_algorithm],
        )
    except JWTError:
        return None
