from cryptography.fernet import Fernet, InvalidToken
from app.config import Config
import base64
import hashlib
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def get_encryption_key(secret_key: Optional[str] = None) -> str:
    """
    Obtém chave de criptografia Fernet válida.
    Fernet requer uma string base64 URL-safe de exatamente 32 bytes decodificados.

    Args:
        secret_key: SECRET_KEY usado na derivação quando ENCRYPTION_KEY não é válida
    """
    key = os.getenv('ENCRYPTION_KEY')

    if key:
        key = key.strip()
        try:
            decoded = base64.urlsafe_b64decode(key)
            if len(decoded) == 32:
                return key
            logger.warning(f"ENCRYPTION_KEY tem tamanho incorreto ({len(decoded)} bytes). Usando chave derivada.")
        except (ValueError, TypeError) as e:
            logger.warning(f"ENCRYPTION_KEY inválida: {e}. Usando chave derivada.")

    # Chave derivada do SECRET_KEY (SHA256 sempre retorna 32 bytes)
    secret_key_bytes = (secret_key or Config.SECRET_KEY).encode('utf-8')
    key_bytes = hashlib.sha256(secret_key_bytes).digest()
    return base64.urlsafe_b64encode(key_bytes).decode('utf-8')


def encrypt_secret(value: str, secret_key: Optional[str] = None) -> str:
    """
    Criptografa o valor de um segredo do flow.

    Returns:
        String criptografada (base64)
    """
    f = Fernet(get_encryption_key(secret_key))
    encrypted = f.encrypt(value.encode('utf-8'))
    return base64.b64encode(encrypted).decode()


def decrypt_secret(encrypted_value: str, secret_key: Optional[str] = None) -> str:
    """
    Descriptografa o valor de um segredo do flow.

    Raises:
        ValueError: Se o valor não puder ser descriptografado com a chave atual
    """
    f = Fernet(get_encryption_key(secret_key))
    try:
        encrypted_bytes = base64.b64decode(encrypted_value.encode())
        return f.decrypt(encrypted_bytes).decode('utf-8')
    except (InvalidToken, ValueError) as e:
        raise ValueError('Segredo não pôde ser descriptografado') from e
