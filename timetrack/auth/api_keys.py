"""
API key generation and shape checks.
"""
import secrets
import string

API_KEY_LENGTH = 32
_ALPHABET = string.ascii_letters + string.digits


def generate_api_key(length: int = API_KEY_LENGTH) -> str:
    """Generate a random alphanumeric API key."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def is_well_formed(api_key: str) -> bool:
    """Check the key has the shape of a generated key, without touching the store."""
    return len(api_key) == API_KEY_LENGTH and all(char in _ALPHABET for char in api_key)
