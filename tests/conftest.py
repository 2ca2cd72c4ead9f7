"""
Pytest configuration and shared fixtures for all tests.
"""
import os
import sys
import datetime
from io import BytesIO

import pytest
from PIL import Image
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from stampcard.config import TestingConfig
from stampcard.log_config import init_logging
from stampcard.models import PassTemplate, RuntimeContext
from stampcard.services.pass_service import PassService
from stampcard.services.storage import MemoryBundleStore
from stampcard.signing.identity import load_identity
from stampcard.signing.signer import ManifestSigner

P12_PASSWORD = 'test-pass'

init_logging(testing=True)


def make_png(size=(100, 100), color=(255, 0, 0, 255)) -> bytes:
    """Solid-color PNG bytes."""
    buffer = BytesIO()
    Image.new('RGBA', size, color).save(buffer, format='PNG')
    return buffer.getvalue()


# =============================================================================
# SIGNING IDENTITY
# =============================================================================

@pytest.fixture(scope='session')
def signing_material():
    """Throwaway RSA key and self-signed pass certificate."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, 'Pass Type ID: pass.com.example.loyalty'),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, 'ABCDE12345'),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, 'Test Coffee Co'),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return key, certificate


@pytest.fixture(scope='session')
def p12_path(signing_material, tmp_path_factory):
    """PKCS#12 file holding the test identity, protected by P12_PASSWORD."""
    key, certificate = signing_material
    data = pkcs12.serialize_key_and_certificates(
        b'stampcard-test', key, certificate, None,
        serialization.BestAvailableEncryption(P12_PASSWORD.encode('utf-8'))
    )
    path = tmp_path_factory.mktemp('identity') / 'pass.p12'
    path.write_bytes(data)
    return str(path)


@pytest.fixture(scope='session')
def signing_identity(p12_path):
    return load_identity(p12_path, P12_PASSWORD)


@pytest.fixture
def signer(signing_identity):
    return ManifestSigner(signing_identity)


@pytest.fixture
def config(p12_path, tmp_path):
    """Testing configuration pointing at the throwaway identity."""
    return TestingConfig(
        p12_path=p12_path,
        p12_password=P12_PASSWORD,
        pass_type_identifier='pass.com.example.loyalty',
        output_dir=str(tmp_path / 'passes'),
        web_service_url='',
        allow_placeholder_signature=False,
    )


# =============================================================================
# TEMPLATES
# =============================================================================

@pytest.fixture
def template_data():
    """Editor-shaped template JSON for a 10-stamp coffee card."""
    return {
        'description': 'Coffee Loyalty Card',
        'organizationName': 'Test Coffee Co',
        'logoText': 'Test Coffee',
        'colors': {
            'foreground': 'rgb(255, 255, 255)',
            'background': '#000000',
            'label': 'rgb(200, 200, 200)',
        },
        'fields': {
            'header': [
                {'key': 'stamps', 'label': 'STAMPS', 'value': '{{stampsEarned}}/{{stampsRequired}}',
                 'textAlignment': 'PKTextAlignmentRight'},
            ],
            'secondary': [
                {'key': 'member', 'label': 'MEMBER', 'value': '{{customerName}}'},
            ],
            'auxiliary': [
                {'key': 'progress', 'label': 'PROGRESS', 'value': '{{progressPercentage}}%'},
            ],
            'back': [
                {'key': 'terms', 'label': 'Terms', 'value': 'One stamp per purchase.'},
            ],
        },
        'images': {
            'icon': make_png((58, 58), (0, 128, 0, 255)),
            'logo': make_png((100, 100), (255, 255, 255, 255)),
        },
        'barcode': {
            'message': 'PASS_ID:{{serialNumber}}:CAMPAIGN_ID:{{campaignId}}',
            'format': 'qr',
            'altText': 'Loyalty Card QR Code',
        },
        'milestones': [8, 10],
    }


@pytest.fixture
def template(template_data):
    return PassTemplate.from_dict(template_data)


@pytest.fixture
def runtime():
    return RuntimeContext(
        stamps_earned=7,
        stamps_required=10,
        customer_id='cust-1001',
        customer_name='Jane Doe',
        customer_email='jane@example.com',
        campaign_id='camp-42',
        campaign_name='Spring Coffee',
        serial_number='serial-0001',
    )


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def store():
    return MemoryBundleStore()


@pytest.fixture
def pass_service(config, signer, store):
    service = PassService(config, signer=signer, store=store)
    yield service
    service.shutdown()
