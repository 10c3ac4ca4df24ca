"""
Webhook signature verification for inbound flow triggers.

Supported providers:
    none      - verification skipped
    generic   - HMAC (sha256 default, sha1/sha512) hex over the raw body
    custom    - same scheme as generic, usually with a custom header name
    github    - HMAC-SHA256 hex, "sha256=" prefix required
    shopify   - HMAC-SHA256 base64
    webflow   - HMAC-SHA256 hex over "timestamp:body" (or body)
    stripe    - "t=<ts>,v1=<sig>" header, HMAC-SHA256 hex over "ts.body"

Secrets and signatures are never logged.
"""

import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300

# Timestamps above this are milliseconds
MILLISECONDS_THRESHOLD = 9999999999

DEFAULT_HEADERS = {
    'generic': 'x-webhook-signature',
    'custom': 'x-webhook-signature',
    'github': 'x-hub-signature-256',
    'shopify': 'x-shopify-hmac-sha256',
    'webflow': 'x-webflow-signature',
    'stripe': 'stripe-signature',
}

WEBFLOW_TIMESTAMP_HEADER = 'x-webflow-timestamp'

_ALGORITHMS = {
    'sha1': hashlib.sha1,
    'sha256': hashlib.sha256,
    'sha512': hashlib.sha512,
}


@dataclass
class SignatureConfig:
    """Per-flow signature settings"""
    secret: str = ''
    header_name: Optional[str] = None
    algorithm: Optional[str] = None
    timestamp_tolerance: int = DEFAULT_TOLERANCE_SECONDS
    require_timestamp: bool = False


@dataclass
class SignatureResult:
    valid: bool
    error: Optional[str] = None
    skipped: bool = False


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode('utf-8')


def _hmac_digest(secret: str, payload: Union[str, bytes], algorithm: str = 'sha256') -> bytes:
    digestmod = _ALGORITHMS.get((algorithm or 'sha256').lower(), hashlib.sha256)
    return hmac.new(_to_bytes(secret), _to_bytes(payload), digestmod).digest()


def compute_signature(secret: str, payload: Union[str, bytes], algorithm: str = 'sha256', encoding: str = 'hex') -> str:
    """HMAC of payload, hex or base64 encoded"""
    digest = _hmac_digest(secret, payload, algorithm)
    if encoding == 'base64':
        return base64.b64encode(digest).decode('ascii')
    return digest.hex()


def _secure_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(_to_bytes(a), _to_bytes(b))


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _normalize_timestamp(raw: str) -> Optional[int]:
    try:
        timestamp = int(float(str(raw).strip()))
    except (TypeError, ValueError):
        return None
    if timestamp > MILLISECONDS_THRESHOLD:
        timestamp = timestamp // 1000
    return timestamp


def _within_tolerance(timestamp: int, tolerance: int, now: Optional[float] = None) -> bool:
    current_time = int(now if now is not None else time.time())
    return abs(current_time - timestamp) <= tolerance


def _verify_hex(body: Union[str, bytes], signature: str, config: SignatureConfig, prefix_required: bool = False) -> SignatureResult:
    algorithm = (config.algorithm or 'sha256').lower()
    if algorithm not in _ALGORITHMS:
        return SignatureResult(valid=False, error=f"Unsupported algorithm: {algorithm}")

    signature = signature.strip()
    prefix = f"{algorithm}="
    if prefix_required and not signature.startswith(prefix):
        return SignatureResult(valid=False, error=f"Signature must start with {prefix}")
    if signature.startswith(prefix):
        signature = signature[len(prefix):]

    expected = compute_signature(config.secret, body, algorithm)
    if not _secure_equals(signature.lower(), expected):
        return SignatureResult(valid=False, error='Signature mismatch')
    return SignatureResult(valid=True)


def _verify_generic(body, signature, headers, config, now=None) -> SignatureResult:
    return _verify_hex(body, signature, config)


def _verify_github(body, signature, headers, config, now=None) -> SignatureResult:
    return _verify_hex(body, signature, SignatureConfig(secret=config.secret, algorithm='sha256'), prefix_required=True)


def _verify_shopify(body, signature, headers, config, now=None) -> SignatureResult:
    expected = compute_signature(config.secret, body, 'sha256', encoding='base64')
    if not _secure_equals(signature.strip(), expected):
        return SignatureResult(valid=False, error='Signature mismatch')
    return SignatureResult(valid=True)


def _verify_webflow(body, signature, headers, config, now=None) -> SignatureResult:
    raw_timestamp = _get_header(headers, WEBFLOW_TIMESTAMP_HEADER)

    if raw_timestamp:
        timestamp = _normalize_timestamp(raw_timestamp)
        if timestamp is None:
            return SignatureResult(valid=False, error='Invalid timestamp')
        if not _within_tolerance(timestamp, config.timestamp_tolerance, now):
            logger.warning("Webflow signature timestamp outside tolerance window")
            return SignatureResult(valid=False, error='Timestamp outside tolerance window')
        body_text = body.decode('utf-8', errors='replace') if isinstance(body, bytes) else body
        payload = f"{raw_timestamp.strip()}:{body_text}"
    elif config.require_timestamp:
        return SignatureResult(valid=False, error=f"Missing {WEBFLOW_TIMESTAMP_HEADER} header")
    else:
        payload = body

    expected = compute_signature(config.secret, payload, 'sha256')
    if not _secure_equals(signature.strip().lower(), expected):
        return SignatureResult(valid=False, error='Signature mismatch')
    return SignatureResult(valid=True)


def _verify_stripe(body, signature, headers, config, now=None) -> SignatureResult:
    timestamp_raw = None
    candidates = []
    for part in signature.split(','):
        key, _, value = part.strip().partition('=')
        if key == 't':
            timestamp_raw = value
        elif key == 'v1' and value:
            candidates.append(value)

    if not timestamp_raw or not candidates:
        return SignatureResult(valid=False, error='Malformed Stripe-Signature header')

    timestamp = _normalize_timestamp(timestamp_raw)
    if timestamp is None:
        return SignatureResult(valid=False, error='Invalid timestamp')
    if not _within_tolerance(timestamp, config.timestamp_tolerance, now):
        logger.warning("Stripe signature timestamp outside tolerance window")
        return SignatureResult(valid=False, error='Timestamp outside tolerance window')

    body_text = body.decode('utf-8', errors='replace') if isinstance(body, bytes) else body
    expected = compute_signature(config.secret, f"{timestamp_raw}.{body_text}", 'sha256')
    if any(_secure_equals(candidate.lower(), expected) for candidate in candidates):
        return SignatureResult(valid=True)
    return SignatureResult(valid=False, error='Signature mismatch')


_VERIFIERS: Dict[str, Callable[..., SignatureResult]] = {
    'generic': _verify_generic,
    'custom': _verify_generic,
    'github': _verify_github,
    'shopify': _verify_shopify,
    'webflow': _verify_webflow,
    'stripe': _verify_stripe,
}


def list_providers():
    return ['none'] + list(_VERIFIERS.keys())


def is_provider_supported(provider: str) -> bool:
    return (provider or 'none').lower() in list_providers()


def verify_provider_signature(
    provider: Optional[str],
    raw_body: Union[str, bytes],
    headers: Mapping[str, str],
    config: SignatureConfig,
    now: Optional[float] = None,
) -> SignatureResult:
    """
    Verify the signature of an inbound webhook.

    Args:
        provider: Signature provider name
        raw_body: Body exactly as received
        headers: Request headers (any case)
        config: Secret, header override, algorithm and timestamp settings
        now: Current epoch seconds (tests)

    Returns:
        SignatureResult; provider "none" yields valid + skipped
    """
    provider = (provider or 'none').lower()
    if provider == 'none':
        return SignatureResult(valid=True, skipped=True)

    verifier = _VERIFIERS.get(provider)
    if verifier is None:
        return SignatureResult(valid=False, error=f"Unknown signature provider: {provider}")

    header_name = config.header_name or DEFAULT_HEADERS[provider]
    signature = _get_header(headers, header_name)
    if not signature:
        return SignatureResult(valid=False, error=f"Missing signature header: {header_name}")
    if not config.secret:
        return SignatureResult(valid=False, error='Webhook secret is not configured')

    return verifier(raw_body, signature, headers, config, now)


def verify_hmac_signature(raw_body: Union[str, bytes], signature: str, secret: str) -> bool:
    """Internal x-webhook-signature check (hex HMAC-SHA256, optional sha256= prefix)."""
    if not signature or not secret:
        return False
    signature = signature.strip()
    if signature.startswith('sha256='):
        signature = signature[len('sha256='):]
    return _secure_equals(signature.lower(), compute_signature(secret, raw_body, 'sha256'))
