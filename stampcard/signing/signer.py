# stampcard/signing/signer.py

"""
Manifest Signer

Produces the detached PKCS#7 signature over the manifest bytes, embedding
the signing certificate and its chain, and verifies such signatures.

Placeholder signatures exist only for development and staging, and only
when WALLET_ALLOW_PLACEHOLDER_SIGNATURE is set. They are logged at
WARNING, reported on every result and never verify. Production never
substitutes anything: a missing or broken identity is a SigningError.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import Encoding, pkcs7

from stampcard.config import Config
from stampcard.errors import SigningError
from stampcard.models import SignatureKind
from stampcard.signing.identity import SigningIdentity, load_identity

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = b'UNSIGNED-PLACEHOLDER-SIGNATURE\n'

# DER-encoded object identifiers (content bytes only)
OID_SIGNED_DATA = bytes.fromhex('2a864886f70d010702')
OID_MESSAGE_DIGEST = bytes.fromhex('2a864886f70d010904')
DIGEST_ALGORITHMS = {
    bytes.fromhex('2b0e03021a'): hashes.SHA1,
    bytes.fromhex('608648016503040201'): hashes.SHA256,
    bytes.fromhex('608648016503040202'): hashes.SHA384,
    bytes.fromhex('608648016503040203'): hashes.SHA512,
}

TAG_INTEGER = 0x02
TAG_OCTET_STRING = 0x04
TAG_OID = 0x06
TAG_SEQUENCE = 0x30
TAG_SET = 0x31
TAG_CONTEXT_0 = 0xA0


@dataclass(frozen=True)
class SignatureResult:
    signature: bytes
    kind: SignatureKind
    warning: Optional[str] = None


class ManifestSigner:
    """
    Signs manifests with a shared, read-only signing identity.

    Args:
        identity: loaded signing identity, or None for placeholder signing
        allow_placeholder: must be True when identity is None
    """

    def __init__(self, identity: Optional[SigningIdentity], allow_placeholder: bool = False):
        if identity is None and not allow_placeholder:
            raise SigningError("No signing identity available and placeholder signatures are not allowed")
        self.identity = identity
        self.allow_placeholder = allow_placeholder

    @classmethod
    def from_config(cls, config: Config) -> 'ManifestSigner':
        """
        Load the configured identity.

        Raises:
            SigningError: when the identity cannot be loaded and placeholder
                signatures are not permitted, or when production is
                configured to allow them
        """
        if config.is_production and config.allow_placeholder_signature:
            raise SigningError("Placeholder signatures cannot be enabled in the production profile")

        try:
            identity = load_identity(config.p12_path, config.p12_password)
        except SigningError as e:
            if not config.placeholder_signature_permitted:
                logger.error(f"Signing identity unavailable ({config.profile} profile): {e.message}")
                raise
            logger.warning(
                f"Signing identity unavailable ({e.message}); PLACEHOLDER SIGNATURES ENABLED "
                f"for the {config.profile} profile. Bundles will not install on devices."
            )
            return cls(None, allow_placeholder=True)
        return cls(identity, allow_placeholder=config.placeholder_signature_permitted)

    @property
    def uses_placeholder(self) -> bool:
        return self.identity is None

    def sign(self, manifest: bytes) -> SignatureResult:
        """
        Sign exactly the given manifest bytes.

        Returns:
            SignatureResult with DER bytes, or a labelled placeholder
        """
        if self.identity is None:
            warning = "signature: placeholder signature used; this bundle will not pass verification"
            logger.warning(f"Writing placeholder signature over manifest ({len(manifest)} bytes)")
            placeholder = PLACEHOLDER_PREFIX + hashlib.sha256(manifest).hexdigest().encode('ascii')
            return SignatureResult(signature=placeholder, kind=SignatureKind.PLACEHOLDER, warning=warning)

        try:
            builder = pkcs7.PKCS7SignatureBuilder().set_data(manifest).add_signer(
                self.identity.certificate, self.identity.private_key, hashes.SHA256()
            )
            for certificate in self.identity.chain:
                builder = builder.add_certificate(certificate)
            signature = builder.sign(
                Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary]
            )
        except (ValueError, TypeError) as e:
            raise SigningError(f"Could not sign manifest: {e}") from e

        return SignatureResult(signature=signature, kind=SignatureKind.PKCS7)


# =============================================================================
# VERIFICATION
# =============================================================================

def _read_tlv(data: bytes, offset: int) -> Tuple[int, int, int]:
    """
    Read one DER element.

    Returns:
        (tag, content start, content end)
    """
    if offset + 2 > len(data):
        raise ValueError("Truncated DER element")
    tag = data[offset]
    length = data[offset + 1]
    offset += 2
    if length & 0x80:
        count = length & 0x7F
        if count == 0 or count > 4 or offset + count > len(data):
            raise ValueError("Unsupported DER length")
        length = int.from_bytes(data[offset:offset + count], 'big')
        offset += count
    end = offset + length
    if end > len(data):
        raise ValueError("Truncated DER element")
    return tag, offset, end


def _children(data: bytes, start: int, end: int) -> List[Tuple[int, int, int, int]]:
    """Child elements as (tag, element start, content start, content end)."""
    children = []
    offset = start
    while offset < end:
        tag, content_start, content_end = _read_tlv(data, offset)
        children.append((tag, offset, content_start, content_end))
        offset = content_end
    return children


def _expect(child, tag: int, what: str):
    if child[0] != tag:
        raise ValueError(f"Unexpected DER tag 0x{child[0]:02x} for {what}")
    return child


@dataclass(frozen=True)
class _SignerInfo:
    serial_number: int
    digest_algorithm: type
    signed_attributes: bytes
    message_digest: bytes
    signature: bytes


def _parse_signer_info(der: bytes) -> _SignerInfo:
    tag, start, end = _read_tlv(der, 0)
    _expect((tag,), TAG_SEQUENCE, 'ContentInfo')
    content_type, signed_data_wrapper = _children(der, start, end)[:2]
    _expect(content_type, TAG_OID, 'contentType')
    if der[content_type[2]:content_type[3]] != OID_SIGNED_DATA:
        raise ValueError("Signature is not PKCS#7 signed data")
    _expect(signed_data_wrapper, TAG_CONTEXT_0, 'content')

    signed_data = _expect(
        _children(der, signed_data_wrapper[2], signed_data_wrapper[3])[0], TAG_SEQUENCE, 'SignedData'
    )
    signer_infos = _expect(_children(der, signed_data[2], signed_data[3])[-1], TAG_SET, 'signerInfos')
    signer_info = _expect(_children(der, signer_infos[2], signer_infos[3])[0], TAG_SEQUENCE, 'SignerInfo')
    fields = _children(der, signer_info[2], signer_info[3])

    sid = _expect(fields[1], TAG_SEQUENCE, 'issuerAndSerialNumber')
    serial = _expect(_children(der, sid[2], sid[3])[1], TAG_INTEGER, 'serialNumber')
    serial_number = int.from_bytes(der[serial[2]:serial[3]], 'big')

    digest_alg = _expect(fields[2], TAG_SEQUENCE, 'digestAlgorithm')
    digest_oid = _expect(_children(der, digest_alg[2], digest_alg[3])[0], TAG_OID, 'digest OID')
    digest_algorithm = DIGEST_ALGORITHMS.get(der[digest_oid[2]:digest_oid[3]])
    if digest_algorithm is None:
        raise ValueError("Unsupported digest algorithm")

    attrs = _expect(fields[3], TAG_CONTEXT_0, 'signedAttrs')
    # Signed attributes are signed as a SET, not as the implicit [0]
    signed_attributes = bytes([TAG_SET]) + der[attrs[1] + 1:attrs[3]]

    message_digest = None
    for attribute in _children(der, attrs[2], attrs[3]):
        attr_type, attr_values = _children(der, attribute[2], attribute[3])[:2]
        if der[attr_type[2]:attr_type[3]] == OID_MESSAGE_DIGEST:
            value = _expect(_children(der, attr_values[2], attr_values[3])[0], TAG_OCTET_STRING, 'messageDigest')
            message_digest = der[value[2]:value[3]]
    if message_digest is None:
        raise ValueError("Signed attributes carry no message digest")

    signature = _expect(fields[5], TAG_OCTET_STRING, 'signature')
    return _SignerInfo(
        serial_number=serial_number,
        digest_algorithm=digest_algorithm,
        signed_attributes=signed_attributes,
        message_digest=message_digest,
        signature=der[signature[2]:signature[3]],
    )


def verify_signature(manifest: bytes, signature: bytes) -> x509.Certificate:
    """
    Verify a detached PKCS#7 signature over ``manifest``.

    Args:
        manifest: manifest bytes exactly as archived
        signature: DER signature bytes

    Returns:
        the embedded signer certificate

    Raises:
        SigningError: if the signature is a placeholder, malformed, or does
            not match the manifest
    """
    if signature.startswith(PLACEHOLDER_PREFIX):
        raise SigningError("Bundle carries a placeholder signature")

    try:
        info = _parse_signer_info(signature)
        certificates = pkcs7.load_der_pkcs7_certificates(signature)
    except (ValueError, IndexError) as e:
        raise SigningError(f"Malformed signature: {e}") from e

    signer = next((c for c in certificates if c.serial_number == info.serial_number), None)
    if signer is None:
        raise SigningError("Signer certificate is not embedded in the signature")

    digest = hashes.Hash(info.digest_algorithm())
    digest.update(manifest)
    if digest.finalize() != info.message_digest:
        raise SigningError("Manifest digest does not match the signed digest")

    public_key = signer.public_key()
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(info.signature, info.signed_attributes, padding.PKCS1v15(), info.digest_algorithm())
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(info.signature, info.signed_attributes, ec.ECDSA(info.digest_algorithm()))
        else:
            raise SigningError(f"Unsupported signer key type: {type(public_key).__name__}")
    except InvalidSignature as e:
        raise SigningError("Signature does not verify against the embedded certificate") from e

    return signer
