# Overview: Service-layer operations for one-time passwords; encapsulates the OTP store.

"""
One-Time Password Store

An OtpStore is created once per app and kept in app.extensions["otp_store"].
Codes live in process memory only, so a multi-process deployment needs
sticky routing of send-otp/verify-otp to one worker.

SECURITY FEATURES:
- 6-digit codes from the secrets CSPRNG
- Time-boxed (OTP_TTL_SECONDS, default 300)
- Single use: a successful verification consumes the code
- Constant-time comparison
- Issuing a new code replaces any outstanding one for the phone
"""

from __future__ import annotations

import hmac
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable

from flask import current_app


OTP_EXTENSION_KEY = "otp_store"
DEFAULT_OTP_TTL_SECONDS = 300


def generate_otp() -> str:
    """Six decimal digits, never starting with 0 (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class _Entry:
    code: str
    expires_at: float


class OtpStore:
    """Process-local phone -> code map with expiry."""

    def __init__(self, ttl_seconds: int = DEFAULT_OTP_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def issue(self, phone: str) -> str:
        code = generate_otp()
        with self._lock:
            self._purge_expired()
            self._entries[phone] = _Entry(code=code, expires_at=self._clock() + self.ttl_seconds)
        return code

    def verify(self, phone: str, code: str) -> bool:
        with self._lock:
            entry = self._entries.get(phone)
            if entry is None:
                return False
            if self._clock() > entry.expires_at:
                del self._entries[phone]
                return False
            if not hmac.compare_digest(entry.code, str(code).strip()):
                return False
            del self._entries[phone]
            return True

    def _purge_expired(self) -> None:
        now = self._clock()
        for phone in [p for p, e in self._entries.items() if now > e.expires_at]:
            del self._entries[phone]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def get_store() -> OtpStore:
    return current_app.extensions[OTP_EXTENSION_KEY]
