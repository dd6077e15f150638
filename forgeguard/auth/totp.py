"""
TOTP Second Factor

RFC 4226 (HOTP) and RFC 6238 (TOTP) for CRM logins: SHA1, 6 digits,
30-second steps, the parameters every mainstream authenticator app
expects.

Features:
- Base32 secret generation (20 random bytes)
- otpauth:// provisioning URI and PNG QR code data URL
- Validation of the current step and one step either side

Security considerations:
- Candidate codes are compared against every step in the window with
  hmac.compare_digest; no early exit on a match
- A malformed secret or candidate is invalid, never an exception
"""

import base64
import binascii
import hashlib
import hmac
import io
import logging
import re
import secrets
import struct
import time
from typing import Optional
from urllib.parse import quote, urlencode

import qrcode
from qrcode.constants import ERROR_CORRECT_M


logger = logging.getLogger(__name__)


TOTP_DIGITS = 6
TOTP_TIME_STEP = 30           # seconds
TOTP_SECRET_BYTES = 20        # matches the SHA1 block output
TOTP_ALGORITHM = 'SHA1'
TOTP_DRIFT_TOLERANCE = 1      # steps accepted either side of now

DEFAULT_ISSUER = "The Forge CRM"

_WHITESPACE = re.compile(r'\s+')


def generate_secret(length: int = TOTP_SECRET_BYTES) -> str:
    """New base32 secret from `length` CSPRNG bytes."""
    return secret_to_base32(secrets.token_bytes(length))


def secret_to_base32(secret: bytes) -> str:
    """Unpadded base32, the form apps display and scan."""
    return base64.b32encode(secret).decode('ascii').rstrip('=')


def base32_to_secret(encoded: str) -> bytes:
    """
    Raw bytes of a base32 secret.

    Apps show secrets in lowercase groups, so whitespace is dropped,
    case is folded and missing padding is restored.

    Raises:
        ValueError: If the text is not base32
    """
    cleaned = _WHITESPACE.sub('', encoded).upper()
    cleaned += '=' * (-len(cleaned) % 8)
    try:
        return base64.b32decode(cleaned)
    except binascii.Error as e:
        raise ValueError("Secret is not valid base32") from e


def get_time_counter(timestamp: float = None, time_step: int = TOTP_TIME_STEP) -> int:
    """Step number containing `timestamp` (now if None)."""
    now = time.time() if timestamp is None else timestamp
    return int(now // time_step)


def hotp(secret: bytes, counter: int, digits: int = TOTP_DIGITS) -> str:
    """
    RFC 4226 one-time password for a counter value.

    Args:
        secret: Shared key bytes
        counter: Moving factor, packed as a big-endian 64-bit integer
        digits: Code length

    Returns:
        Zero-padded decimal code
    """
    digest = hmac.new(secret, struct.pack('>Q', counter), hashlib.sha1).digest()
    start = digest[19] & 0x0F
    (binary,) = struct.unpack('>I', digest[start:start + 4])
    return f"{(binary & 0x7FFFFFFF) % 10 ** digits:0{digits}d}"


def totp(secret: bytes, timestamp: float = None,
         digits: int = TOTP_DIGITS,
         time_step: int = TOTP_TIME_STEP) -> str:
    """RFC 6238 code for the step containing `timestamp` (now if None)."""
    return hotp(secret, get_time_counter(timestamp, time_step), digits)


def verify_totp(secret: bytes, code: str,
                timestamp: float = None,
                digits: int = TOTP_DIGITS,
                time_step: int = TOTP_TIME_STEP,
                drift_tolerance: int = TOTP_DRIFT_TOLERANCE) -> bool:
    """
    Check a candidate code against a window of steps around `timestamp`.

    The candidate must be exactly `digits` ASCII digits once whitespace
    is removed. Every step in the window is computed and compared.

    Returns:
        True if any step in the window produces the candidate
    """
    candidate = _WHITESPACE.sub('', str(code))
    if len(candidate) != digits or not (candidate.isascii() and candidate.isdigit()):
        return False

    center = get_time_counter(timestamp, time_step)
    steps = range(center - drift_tolerance, center + drift_tolerance + 1)

    matched = False
    for step in steps:
        expected = hotp(secret, step, digits)
        matched |= hmac.compare_digest(candidate.encode('ascii'), expected.encode('ascii'))
    return matched


class TOTPEngine:
    """
    Secret generation, provisioning and validation for the second factor.

    Secrets cross this boundary as base32 strings, which is what users
    type or scan and what gets encrypted for storage.

    Example:
        >>> engine = TOTPEngine()
        >>> secret = engine.generate_secret()
        >>> engine.validate(secret, totp(base32_to_secret(secret)))
        True
    """

    def __init__(self, issuer: str = DEFAULT_ISSUER,
                 digits: int = TOTP_DIGITS,
                 time_step: int = TOTP_TIME_STEP,
                 drift_tolerance: int = TOTP_DRIFT_TOLERANCE):
        """
        Initialize the engine.

        Args:
            issuer: Service name shown in authenticator apps
            digits: Number of digits in OTP
            time_step: Time step in seconds
            drift_tolerance: Accepted time steps either side of now
        """
        self._issuer = issuer
        self._digits = digits
        self._time_step = time_step
        self._drift_tolerance = drift_tolerance

    @property
    def issuer(self) -> str:
        return self._issuer

    def generate_secret(self) -> str:
        """Generate a new base32 secret (20 random bytes)."""
        return generate_secret()

    def provisioning_uri(self, secret: str, account_label: str) -> str:
        """
        Key URI for authenticator apps, e.g.
        otpauth://totp/The%20Forge%20CRM%3Aagent%40forge.test?secret=...

        Args:
            secret: Base32 secret
            account_label: Shown under the issuer in the app (the email)
        """
        query = urlencode({
            'secret': secret,
            'issuer': self._issuer,
            'algorithm': TOTP_ALGORITHM,
            'digits': self._digits,
            'period': self._time_step,
        }, quote_via=quote)
        return f"otpauth://totp/{quote(self._issuer + ':' + account_label)}?{query}"

    def qr_code_data_url(self, uri: str) -> str:
        """
        Render a provisioning URI as a PNG QR code data URL.

        Args:
            uri: otpauth:// URI

        Returns:
            data:image/png;base64,... string for an <img> tag
        """
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_M,
            box_size=4,
            border=4,
        )
        qr.add_data(uri)
        qr.make(fit=True)

        buffer = io.BytesIO()
        qr.make_image().save(buffer)
        return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode('ascii')

    def generate(self, secret: str, timestamp: float = None) -> str:
        """
        Generate the current code for a secret.

        Args:
            secret: Base32 secret
            timestamp: Unix timestamp (uses current time if None)

        Returns:
            TOTP code string
        """
        return totp(base32_to_secret(secret), timestamp, self._digits, self._time_step)

    def validate(self, secret: str, code: str, timestamp: Optional[float] = None) -> bool:
        """
        Validate a candidate code against a base32 secret.

        Never raises: a malformed secret or candidate is simply invalid.

        Args:
            secret: Base32 secret
            code: Candidate code from the user
            timestamp: Unix timestamp (uses current time if None)

        Returns:
            True if the code matches the current step or an adjacent one
        """
        if not secret or code is None:
            return False
        try:
            raw = base32_to_secret(secret)
        except (ValueError, TypeError, AttributeError):
            logger.warning("TOTP validation with malformed secret")
            return False
        if not raw:
            return False

        return verify_totp(
            raw,
            code,
            timestamp,
            self._digits,
            self._time_step,
            self._drift_tolerance
        )

    def remaining_seconds(self, timestamp: float = None) -> int:
        """Get seconds until the next code."""
        if timestamp is None:
            timestamp = time.time()
        return self._time_step - (int(timestamp) % self._time_step)

    def __repr__(self) -> str:
        return f"TOTPEngine(issuer='{self._issuer}')"
