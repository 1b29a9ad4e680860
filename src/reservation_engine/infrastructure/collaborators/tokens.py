# src/reservation_engine/infrastructure/collaborators/tokens.py

import secrets
import string
from typing import Protocol

_CODE_ALPHABET = string.ascii_uppercase + string.digits


class TokenGenerator(Protocol):
    def check_in_token(self) -> str: ...

    def discount_code(self, prefix: str) -> str: ...


class SecretsTokenGenerator:
    """
    Check-in tokens are 256 random bits, hex encoded.
    Discount codes are short and human readable, e.g. ``WELCOME-7KQ2ZD``.
    """

    def __init__(self, code_length: int = 6):
        self.code_length = code_length

    def check_in_token(self) -> str:
        return secrets.token_hex(32)

    def discount_code(self, prefix: str) -> str:
        suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(self.code_length))
        return f"{prefix}-{suffix}"
