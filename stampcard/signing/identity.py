# stampcard/signing/identity.py

"""
Signing Identity

Loads the PKCS#12 container (private key, signing certificate and any
chain certificates such as the WWDR intermediate) once, into an immutable
object that every worker shares. The key and passphrase never appear in
reprs, logs or error messages.
"""

import os
import logging
from dataclasses import dataclass
from typing import Tuple

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from stampcard.errors import SigningError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, repr=False)
class SigningIdentity:
    """Read-only signing material; safe to share between threads."""
    private_key: object
    certificate: x509.Certificate
    chain: Tuple[x509.Certificate, ...] = ()

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    def __repr__(self):
        return f"SigningIdentity(subject={self.subject!r}, chain={len(self.chain)})"


def load_identity_bytes(data: bytes, password: str = '') -> SigningIdentity:
    """
    Load a signing identity from PKCS#12 bytes.

    Args:
        data: PKCS#12 container bytes
        password: container passphrase ('' for none)

    Returns:
        SigningIdentity

    Raises:
        SigningError: if the container cannot be opened or lacks a key/certificate
    """
    secret = password.encode('utf-8') if password else None
    try:
        private_key, certificate, chain = pkcs12.load_key_and_certificates(data, secret)
    except (ValueError, TypeError) as e:
        # The underlying message can mention the passphrase; keep it out
        raise SigningError("Signing identity could not be decrypted or parsed") from e

    if private_key is None or certificate is None:
        raise SigningError("Signing identity must contain a private key and a certificate")
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise SigningError(f"Unsupported signing key type: {type(private_key).__name__}")

    return SigningIdentity(private_key=private_key, certificate=certificate, chain=tuple(chain or ()))


def load_identity(path: str, password: str = '') -> SigningIdentity:
    """
    Load a signing identity from a PKCS#12 file.

    Raises:
        SigningError: if the file is missing, unreadable or invalid
    """
    if not path:
        raise SigningError("No signing identity configured (WALLET_P12_PATH is not set)")
    if not os.path.exists(path):
        raise SigningError(f"Signing identity not found at {path}")
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise SigningError(f"Signing identity at {path} could not be read: {e.strerror}") from e

    identity = load_identity_bytes(data, password)
    logger.info(f"Loaded signing identity {identity.subject} with {len(identity.chain)} chain certificate(s)")
    return identity
