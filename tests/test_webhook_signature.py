"""
Tests for inbound webhook signature verification
"""

import time

import pytest
from app.services.webhook_signature import (
    DEFAULT_TOLERANCE_SECONDS,
    SignatureConfig,
    compute_signature,
    is_provider_supported,
    list_providers,
    verify_hmac_signature,
    verify_provider_signature,
)

SECRET = 'whsec_test'
BODY = b'{"event":"order.created","amount":150}'


def flip_last_char(signature):
    return signature[:-1] + ('0' if signature[-1] != '0' else '1')


class TestGenericProvider:
    """Test generic and custom HMAC providers"""

    def test_valid_signature(self):
        signature = compute_signature(SECRET, BODY)
        result = verify_provider_signature(
            'generic', BODY, {'X-Webhook-Signature': signature}, SignatureConfig(secret=SECRET)
        )
        assert result.valid

    def test_prefixed_signature_accepted(self):
        signature = 'sha256=' + compute_signature(SECRET, BODY)
        result = verify_provider_signature(
            'generic', BODY, {'x-webhook-signature': signature}, SignatureConfig(secret=SECRET)
        )
        assert result.valid

    def test_flipped_signature_rejected(self):
        signature = flip_last_char(compute_signature(SECRET, BODY))
        result = verify_provider_signature(
            'generic', BODY, {'x-webhook-signature': signature}, SignatureConfig(secret=SECRET)
        )
        assert not result.valid
        assert result.error == 'Signature mismatch'

    def test_modified_body_rejected(self):
        signature = compute_signature(SECRET, BODY)
        result = verify_provider_signature(
            'generic', BODY + b' ', {'x-webhook-signature': signature}, SignatureConfig(secret=SECRET)
        )
        assert not result.valid

    def test_custom_header_and_algorithm(self):
        signature = compute_signature(SECRET, BODY, 'sha512')
        config = SignatureConfig(secret=SECRET, header_name='X-Custom-Sig', algorithm='sha512')
        assert verify_provider_signature('custom', BODY, {'x-custom-sig': signature}, config).valid

    def test_unsupported_algorithm(self):
        config = SignatureConfig(secret=SECRET, algorithm='md5')
        result = verify_provider_signature('generic', BODY, {'x-webhook-signature': 'abc'}, config)
        assert not result.valid
        assert 'md5' in result.error


class TestProviderPreconditions:

    def test_none_is_skipped(self):
        result = verify_provider_signature('none', BODY, {}, SignatureConfig())
        assert result.valid and result.skipped

    def test_missing_provider_means_none(self):
        assert verify_provider_signature(None, BODY, {}, SignatureConfig()).skipped

    def test_unknown_provider(self):
        result = verify_provider_signature('paypal', BODY, {}, SignatureConfig(secret=SECRET))
        assert not result.valid
        assert result.error == 'Unknown signature provider: paypal'

    def test_missing_header(self):
        result = verify_provider_signature('github', BODY, {}, SignatureConfig(secret=SECRET))
        assert result.error == 'Missing signature header: x-hub-signature-256'

    def test_missing_secret(self):
        result = verify_provider_signature('generic', BODY, {'x-webhook-signature': 'abc'}, SignatureConfig())
        assert result.error == 'Webhook secret is not configured'

    def test_provider_listing(self):
        assert list_providers()[0] == 'none'
        assert is_provider_supported('Stripe')
        assert not is_provider_supported('paypal')


class TestGithubAndShopify:

    def test_github_requires_prefix(self):
        bare = compute_signature(SECRET, BODY)
        config = SignatureConfig(secret=SECRET)

        assert verify_provider_signature('github', BODY, {'X-Hub-Signature-256': 'sha256=' + bare}, config).valid
        result = verify_provider_signature('github', BODY, {'X-Hub-Signature-256': bare}, config)
        assert not result.valid
        assert result.error == 'Signature must start with sha256='

    def test_shopify_base64(self):
        signature = compute_signature(SECRET, BODY, encoding='base64')
        config = SignatureConfig(secret=SECRET)

        assert verify_provider_signature('shopify', BODY, {'X-Shopify-Hmac-Sha256': signature}, config).valid
        hex_signature = compute_signature(SECRET, BODY)
        assert not verify_provider_signature('shopify', BODY, {'X-Shopify-Hmac-Sha256': hex_signature}, config).valid


class TestTimestampedProviders:
    """Test Stripe and Webflow replay windows"""

    NOW = 1_700_000_000

    def _stripe_header(self, timestamp):
        signature = compute_signature(SECRET, f"{timestamp}.{BODY.decode()}")
        return {'Stripe-Signature': f"t={timestamp},v1={signature}"}

    def _webflow_headers(self, timestamp):
        signature = compute_signature(SECRET, f"{timestamp}:{BODY.decode()}")
        return {'x-webflow-signature': signature, 'x-webflow-timestamp': str(timestamp)}

    @pytest.mark.parametrize('offset, valid', [
        (0, True),
        (DEFAULT_TOLERANCE_SECONDS - 1, True),
        (DEFAULT_TOLERANCE_SECONDS + 1, False),
    ])
    def test_stripe_tolerance(self, offset, valid):
        headers = self._stripe_header(self.NOW - offset)
        result = verify_provider_signature('stripe', BODY, headers, SignatureConfig(secret=SECRET), now=self.NOW)
        assert result.valid is valid

    def test_stripe_any_v1_may_match(self):
        good = compute_signature(SECRET, f"{self.NOW}.{BODY.decode()}")
        headers = {'stripe-signature': f"t={self.NOW},v1={'0' * 64},v1={good}"}
        assert verify_provider_signature('stripe', BODY, headers, SignatureConfig(secret=SECRET), now=self.NOW).valid

    def test_stripe_malformed(self):
        headers = {'stripe-signature': 'v1=abc'}
        result = verify_provider_signature('stripe', BODY, headers, SignatureConfig(secret=SECRET), now=self.NOW)
        assert result.error == 'Malformed Stripe-Signature header'

    @pytest.mark.parametrize('offset, valid', [
        (DEFAULT_TOLERANCE_SECONDS - 1, True),
        (DEFAULT_TOLERANCE_SECONDS + 1, False),
        (-(DEFAULT_TOLERANCE_SECONDS + 1), False),
    ])
    def test_webflow_tolerance(self, offset, valid):
        headers = self._webflow_headers(self.NOW - offset)
        result = verify_provider_signature('webflow', BODY, headers, SignatureConfig(secret=SECRET), now=self.NOW)
        assert result.valid is valid

    def test_webflow_millisecond_timestamp(self):
        headers = self._webflow_headers(self.NOW * 1000)
        assert verify_provider_signature('webflow', BODY, headers, SignatureConfig(secret=SECRET), now=self.NOW).valid

    def test_webflow_without_timestamp(self):
        headers = {'x-webflow-signature': compute_signature(SECRET, BODY)}
        assert verify_provider_signature('webflow', BODY, headers, SignatureConfig(secret=SECRET)).valid

        config = SignatureConfig(secret=SECRET, require_timestamp=True)
        result = verify_provider_signature('webflow', BODY, headers, config)
        assert result.error == 'Missing x-webflow-timestamp header'

    def test_uses_wall_clock_by_default(self):
        headers = self._stripe_header(int(time.time()))
        assert verify_provider_signature('stripe', BODY, headers, SignatureConfig(secret=SECRET)).valid


class TestInternalHmac:

    def test_hex_with_or_without_prefix(self):
        signature = compute_signature(SECRET, BODY)
        assert verify_hmac_signature(BODY, signature, SECRET)
        assert verify_hmac_signature(BODY, 'sha256=' + signature, SECRET)
        assert verify_hmac_signature(BODY.decode(), signature.upper(), SECRET)

    def test_rejects_wrong_or_missing(self):
        signature = compute_signature(SECRET, BODY)
        assert not verify_hmac_signature(BODY, flip_last_char(signature), SECRET)
        assert not verify_hmac_signature(BODY, '', SECRET)
        assert not verify_hmac_signature(BODY, signature, '')
