"""
Tests for flow secret encryption
"""

import base64
import hashlib

import pytest
from app.utils.encryption import decrypt_secret, encrypt_secret, get_encryption_key


@pytest.fixture(autouse=True)
def no_encryption_key(monkeypatch):
    monkeypatch.delenv('ENCRYPTION_KEY', raising=False)


class TestEncryption:
    """Test encryption/decryption"""

    def test_encrypt_decrypt_simple(self):
        """Test basic encryption and decryption"""
        encrypted = encrypt_secret('sk_live_123', secret_key='app-secret')

        assert encrypted != 'sk_live_123'
        assert decrypt_secret(encrypted, secret_key='app-secret') == 'sk_live_123'

    def test_unicode_value(self):
        value = 'senha-çãé-🔑'
        assert decrypt_secret(encrypt_secret(value, 'k'), 'k') == value

    def test_wrong_key_raises(self):
        """A value encrypted under another key cannot be read"""
        encrypted = encrypt_secret('value', secret_key='key-one')

        with pytest.raises(ValueError):
            decrypt_secret(encrypted, secret_key='key-two')

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            decrypt_secret('not-encrypted', secret_key='k')

    def test_derived_key_is_stable(self):
        assert get_encryption_key('abc') == get_encryption_key('abc')
        assert get_encryption_key('abc') != get_encryption_key('abd')

    def test_valid_encryption_key_env_wins(self, monkeypatch):
        key = base64.urlsafe_b64encode(b'0' * 32).decode()
        monkeypatch.setenv('ENCRYPTION_KEY', key)

        assert get_encryption_key('ignored') == key

    def test_invalid_encryption_key_env_falls_back(self, monkeypatch):
        monkeypatch.setenv('ENCRYPTION_KEY', base64.urlsafe_b64encode(b'short').decode())

        expected = base64.urlsafe_b64encode(hashlib.sha256(b'abc').digest()).decode()
        assert get_encryption_key('abc') == expected
