"""
OTP lifecycle manager – issues and verifies phone-bound one-time codes.

All state lives in the shared TTL store under three key families:

  • rate:ip:{ip}        – 4-byte request counter, 1 min TTL
  • rate:phone:{phone}  – "locked" sentinel, 1 min TTL
  • otp:phone:{phone}   – the active 6-digit code, 5 min TTL

The manager keeps no in-process state, so one instance can serve every
request.  Reading the counter, checking it and writing it back are three
separate round trips: two concurrent requests from the same address can
both see a count below the limit and both be admitted.  That temporary
over-admission is accepted; the window still closes once the writes land.

Delivery is out of scope – the issued code is written to the log.
"""

from __future__ import annotations

import logging
import re
import secrets
import struct
from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from random import Random

from app import config
from app.store import StoreError, TtlStore

logger = logging.getLogger(__name__)

PHONE_NUMBER_PATTERN = re.compile(r"09[0-9]{9}")

PHONE_LOCK_SENTINEL = "locked"

# Counter wire format: little-endian signed 32-bit integer.
_COUNTER = struct.Struct("<i")


# ── Keys ──────────────────────────────────────────────────────────────────


def ip_counter_key(source_address: str | None) -> str:
    # Callers without an address share one anonymous counter.
    return f"rate:ip:{source_address or ''}"


def phone_lock_key(phone_number: str) -> str:
    return f"rate:phone:{phone_number}"


def otp_key(phone_number: str) -> str:
    return f"otp:phone:{phone_number}"


def is_valid_phone_number(phone_number: str | None) -> bool:
    return bool(phone_number) and PHONE_NUMBER_PATTERN.fullmatch(phone_number) is not None


def encode_counter(count: int) -> bytes:
    return _COUNTER.pack(count)


def decode_counter(raw: bytes | None) -> int:
    if raw is None:
        return 0
    if len(raw) != _COUNTER.size:
        raise StoreError(f"Request counter must be {_COUNTER.size} bytes, got {len(raw)}")
    return _COUNTER.unpack(raw)[0]


# ── Outcomes ──────────────────────────────────────────────────────────────


class RateLimitScope(str, Enum):
    ADDRESS = "address"
    PHONE = "phone"


class RequestOutcome(str, Enum):
    """Result of a request-OTP call; each value has a fixed user-facing message."""

    SENT = "sent"
    INVALID_PHONE_NUMBER = "invalid_phone_number"
    ADDRESS_RATE_LIMITED = "address_rate_limited"
    PHONE_RATE_LIMITED = "phone_rate_limited"
    TRANSIENT_FAILURE = "transient_failure"

    @property
    def message(self) -> str:
        return _REQUEST_MESSAGES[self]

    @property
    def rate_limit_scope(self) -> RateLimitScope | None:
        if self is RequestOutcome.ADDRESS_RATE_LIMITED:
            return RateLimitScope.ADDRESS
        if self is RequestOutcome.PHONE_RATE_LIMITED:
            return RateLimitScope.PHONE
        return None


_REQUEST_MESSAGES: dict[RequestOutcome, str] = {
    RequestOutcome.SENT: "کد OTP با موفقیت ارسال شد (در لاگ ثبت شد).",
    RequestOutcome.INVALID_PHONE_NUMBER: "شماره تلفن نامعتبر است.",
    RequestOutcome.ADDRESS_RATE_LIMITED: "تعداد درخواست‌ها از این IP بیش از حد مجاز است.",
    RequestOutcome.PHONE_RATE_LIMITED: "فقط یک درخواست در دقیقه مجاز است.",
    RequestOutcome.TRANSIENT_FAILURE: "خطایی رخ داد. لطفاً دوباره تلاش کنید.",
}

VERIFIED_MESSAGE = "تأیید شد"
NOT_VERIFIED_MESSAGE = "کد نامعتبر است"


# ── Code generation ───────────────────────────────────────────────────────


class CodeGenerator:
    """
    Draws 6-digit codes uniformly from [100000, 999999].

    The random source is injectable; the default is the OS CSPRNG.
    """

    LOWEST = 100_000
    HIGHEST = 999_999

    def __init__(self, rng: Random | None = None) -> None:
        self._rng = rng or secrets.SystemRandom()

    def __call__(self) -> str:
        return str(self._rng.randint(self.LOWEST, self.HIGHEST))


# ══════════════════════════════════════════════════════════════════════════
#                         OTP LIFECYCLE MANAGER
# ══════════════════════════════════════════════════════════════════════════


class OtpLifecycleManager:
    def __init__(
        self,
        store: TtlStore,
        *,
        generator: Callable[[], str] | None = None,
        otp_ttl: timedelta = timedelta(seconds=config.OTP_TTL_SECONDS),
        rate_window: timedelta = timedelta(seconds=config.RATE_WINDOW_SECONDS),
        ip_request_limit: int = config.IP_REQUEST_LIMIT,
        sequential_warn_threshold: int = config.IP_SEQUENTIAL_WARN_THRESHOLD,
    ) -> None:
        self._store = store
        self._generate = generator or CodeGenerator()
        self._otp_ttl = otp_ttl
        self._rate_window = rate_window
        self._ip_request_limit = ip_request_limit
        self._sequential_warn_threshold = sequential_warn_threshold

    # ── Request ────────────────────────────────────────────────────────

    async def request_otp(
        self,
        phone_number: str,
        source_address: str | None,
    ) -> RequestOutcome:
        """
        Issue (or re-send) the active code for *phone_number*.

        Checks run in order and the first failing one wins: phone format,
        per-address quota, per-phone cooldown.  Store failures are logged
        and reported as TRANSIENT_FAILURE; nothing is raised.
        """
        if not is_valid_phone_number(phone_number):
            logger.warning("Invalid phone number: %s", phone_number)
            return RequestOutcome.INVALID_PHONE_NUMBER

        try:
            return await self._issue(phone_number, source_address)
        except StoreError:
            logger.exception("Failed to issue OTP for %s", phone_number)
            return RequestOutcome.TRANSIENT_FAILURE

    async def _issue(self, phone_number: str, source_address: str | None) -> RequestOutcome:
        ip_key = ip_counter_key(source_address)
        ip_count = decode_counter(await self._store.get(ip_key))

        if ip_count > self._sequential_warn_threshold:
            logger.warning(
                "Sequential OTP requests detected from IP: %s, Count: %d",
                source_address,
                ip_count + 1,
            )

        if ip_count >= self._ip_request_limit:
            logger.warning("Rate limit exceeded for IP: %s, Count: %d", source_address, ip_count)
            return RequestOutcome.ADDRESS_RATE_LIMITED

        lock_key = phone_lock_key(phone_number)
        if await self._store.get(lock_key) is not None:
            logger.warning("Sequential OTP request blocked for phone: %s", phone_number)
            return RequestOutcome.PHONE_RATE_LIMITED

        code, created = await self.read_or_create(
            otp_key(phone_number),
            self._otp_ttl,
            self._generate,
        )

        await self._store.set(ip_key, encode_counter(ip_count + 1), self._rate_window)
        await self._store.set_string(lock_key, PHONE_LOCK_SENTINEL, self._rate_window)

        if created:
            logger.info("OTP generated for %s: %s", phone_number, code)
        else:
            logger.info("OTP re-sent for %s: %s (still active)", phone_number, code)
        return RequestOutcome.SENT

    async def read_or_create(
        self,
        key: str,
        ttl: timedelta,
        generator: Callable[[], str],
    ) -> tuple[str, bool]:
        """
        Cache-aside read: return the stored value, or generate, store and
        return a new one.  The second element is True when a value was created.
        """
        existing = await self._store.get_string(key)
        if existing is not None:
            return existing, False

        value = generator()
        await self._store.set_string(key, value, ttl)
        return value, True

    # ── Verify ─────────────────────────────────────────────────────────

    async def verify_otp(self, phone_number: str, submitted_code: str) -> bool:
        """
        Check *submitted_code* against the active code and consume it on match.

        An absent code and a wrong code both return False.  There is no
        attempt counter: wrong guesses neither consume the code nor lock
        the phone number.
        """
        key = otp_key(phone_number)
        try:
            stored = await self._store.get_string(key)
            if stored is not None and stored == submitted_code:
                await self._store.delete(key)
                logger.info("OTP verified for %s", phone_number)
                return True
        except StoreError:
            logger.exception("Failed to verify OTP for %s", phone_number)
            return False

        logger.warning("Invalid OTP attempt for %s: %s", phone_number, submitted_code)
        return False
