"""
Centralized ID generation for Cortex.
"""

import secrets


def generate_id() -> str:
    """
    Generate a hex32 identifier.

    Returns:
        32 lowercase hex characters, e.g. 'a3f4b2c1d5e6f7a8b9c0d1e2f3a4b5c6'
    """
    return secrets.token_hex(16)
