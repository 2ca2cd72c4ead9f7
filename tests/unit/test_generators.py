"""
Pass Document Builder Tests.

Tests for placeholder substitution and the pass.json descriptor.
"""
import json
from datetime import date, datetime, timezone
from io import BytesIO

import pytest
from PIL import Image

from conftest import make_png
from stampcard.config import TestingConfig
from stampcard.generators.apple import PassDocumentBuilder
from stampcard.generators.base import (
    build_template_data, expiry_timestamp, format_expiry, render_placeholders
)
from stampcard.models import LogoFormat, PassTemplate, RuntimeContext


def image_size(data: bytes):
    return Image.open(BytesIO(data)).size


# =============================================================================
# PLACEHOLDERS
# =============================================================================

@pytest.mark.unit
class TestPlaceholders:
    """Test placeholder rendering and template data."""

    def test_render_known_and_unknown_tokens(self):
        """
        GIVEN text with one known and one unknown placeholder
        WHEN rendering it
        THEN the known token is replaced and the unknown one stays verbatim
        """
        text, unresolved = render_placeholders('{{a}} and {{missing}}', {'a': 'x'})
        assert text == 'x and {{missing}}'
        assert unresolved == ['missing']

    def test_render_none_text(self):
        assert render_placeholders(None, {}) == ('', [])

    def test_template_data_progress_values(self, template, runtime):
        """
        GIVEN 7 of 10 stamps earned
        WHEN building template data
        THEN progress values and recipient values are strings
        """
        data = build_template_data(template, runtime, 'serial-0001')

        assert data['stampsEarned'] == '7'
        assert data['stampsRequired'] == '10'
        assert data['stampsRemaining'] == '3'
        assert data['progressPercentage'] == '70'
        assert data['customerName'] == 'Jane Doe'
        assert data['campaignId'] == 'camp-42'
        assert data['serialNumber'] == 'serial-0001'
        assert 'points' not in data
        assert 'expiryDate' not in data

    def test_template_data_clamps_earned(self, template):
        """
        GIVEN more stamps earned than required
        WHEN building template data
        THEN the card reads as complete
        """
        data = build_template_data(template, RuntimeContext(stamps_earned=14, stamps_required=10), 's')
        assert data['stampsEarned'] == '10'
        assert data['stampsRemaining'] == '0'
        assert data['progressPercentage'] == '100'

    def test_template_data_includes_extra_values(self, template):
        """
        GIVEN extra runtime values
        WHEN building template data
        THEN they are available as placeholders without overriding built-ins
        """
        runtime = RuntimeContext(extra={'loyaltyTier': 'Gold', 'stampsEarned': 99})
        data = build_template_data(template, runtime, 's')
        assert data['loyaltyTier'] == 'Gold'
        assert data['stampsEarned'] == '0'

    def test_expiry_formats(self):
        """
        GIVEN an expiry date
        WHEN formatting it
        THEN long, short and timestamp forms are produced
        """
        assert format_expiry(date(2026, 12, 31)) == ('Dec 31, 2026', '12/31/26')
        assert expiry_timestamp(date(2026, 12, 31)) == '2026-12-31T23:59:59+00:00'
        assert expiry_timestamp(datetime(2026, 6, 1, 12, 30)) == '2026-06-01T12:30:00+00:00'
        assert expiry_timestamp(datetime(2026, 6, 1, 12, 30, tzinfo=timezone.utc)) == '2026-06-01T12:30:00+00:00'


# =============================================================================
# DESCRIPTOR
# =============================================================================

@pytest.mark.unit
class TestPassDocumentBuilder:
    """Test PassDocumentBuilder.build."""

    def test_descriptor_identity_and_colors(self, config, template, runtime):
        """
        GIVEN a valid template
        WHEN building the descriptor
        THEN identity, style and rgb colors are set
        """
        descriptor = PassDocumentBuilder(config).build(template, runtime, 'serial-0001').descriptor

        assert descriptor['formatVersion'] == 1
        assert descriptor['passTypeIdentifier'] == 'pass.com.example.loyalty'
        assert descriptor['teamIdentifier'] == 'ABCDE12345'
        assert descriptor['serialNumber'] == 'serial-0001'
        assert descriptor['organizationName'] == 'Test Coffee Co'
        assert descriptor['backgroundColor'] == 'rgb(0, 0, 0)'
        assert descriptor['foregroundColor'] == 'rgb(255, 255, 255)'
        assert descriptor['logoText'] == 'Test Coffee'
        assert 'storeCard' in descriptor

    def test_fields_are_substituted(self, config, template, runtime):
        """
        GIVEN field values with placeholders
        WHEN building the descriptor
        THEN values are substituted and alignment is kept
        """
        card = PassDocumentBuilder(config).build(template, runtime, 'serial-0001').descriptor['storeCard']

        header = card['headerFields'][0]
        assert header['key'] == 'stamps'
        assert header['value'] == '7/10'
        assert header['label'] == 'STAMPS'
        assert header['textAlignment'] == 'PKTextAlignmentRight'
        assert card['secondaryFields'][0]['value'] == 'Jane Doe'
        assert card['auxiliaryFields'][0]['value'] == '70%'
        assert card['backFields'][0]['value'] == 'One stamp per purchase.'
        assert 'primaryFields' not in card

    def test_unresolved_placeholders_are_reported(self, config, template_data, runtime):
        """
        GIVEN a field referencing a value the recipient does not have
        WHEN building the descriptor
        THEN the token stays verbatim and is reported
        """
        template_data['fields']['primary'] = [{'key': 'tier', 'label': 'TIER', 'value': '{{loyaltyTier}}'}]
        document = PassDocumentBuilder(config).build(PassTemplate.from_dict(template_data), runtime, 's-1')

        assert document.descriptor['storeCard']['primaryFields'][0]['value'] == '{{loyaltyTier}}'
        assert document.unresolved_placeholders == ['loyaltyTier']

    def test_barcode_message(self, config, template, runtime):
        """
        GIVEN the default QR barcode template
        WHEN building the descriptor
        THEN the message carries the serial and campaign ids in both barcode keys
        """
        descriptor = PassDocumentBuilder(config).build(template, runtime, 'serial-0001').descriptor

        barcode = descriptor['barcode']
        assert barcode['message'] == 'PASS_ID:serial-0001:CAMPAIGN_ID:camp-42'
        assert barcode['format'] == 'PKBarcodeFormatQR'
        assert barcode['messageEncoding'] == 'iso-8859-1'
        assert barcode['altText'] == 'Loyalty Card QR Code'
        assert descriptor['barcodes'] == [barcode]

    def test_no_barcode_when_template_has_none(self, config, template_data, runtime):
        template_data['barcode'] = None
        descriptor = PassDocumentBuilder(config).build(
            PassTemplate.from_dict(template_data), runtime, 's-1'
        ).descriptor
        assert 'barcode' not in descriptor
        assert 'barcodes' not in descriptor

    def test_wide_logo_suppresses_logo_text(self, config, template, runtime):
        """
        GIVEN a wide logo
        WHEN building the descriptor
        THEN logoText is omitted
        """
        document = PassDocumentBuilder(config).build(template, runtime, 's-1', logo_format=LogoFormat.WIDE)
        assert 'logoText' not in document.descriptor

    def test_expiry_added_to_auxiliary(self, config, template_data):
        """
        GIVEN a template with hasExpiry and a recipient expiry date
        WHEN building the descriptor
        THEN an EXPIRES date field and expirationDate are added
        """
        template_data['hasExpiry'] = True
        runtime = RuntimeContext(stamps_earned=2, stamps_required=10, expiry_date=date(2026, 12, 31))
        descriptor = PassDocumentBuilder(config).build(
            PassTemplate.from_dict(template_data), runtime, 's-1'
        ).descriptor

        expiry = descriptor['storeCard']['auxiliaryFields'][-1]
        assert expiry['key'] == 'expiry'
        assert expiry['label'] == 'EXPIRES'
        assert expiry['value'] == '2026-12-31T23:59:59+00:00'
        assert expiry['dateStyle'] == 'PKDateStyleShort'
        assert expiry['timeStyle'] == 'PKDateStyleNone'
        assert descriptor['expirationDate'] == '2026-12-31T23:59:59+00:00'

    def test_expiry_moves_to_back_when_auxiliary_full(self, config, template_data):
        """
        GIVEN four auxiliary fields already
        WHEN adding the expiry field
        THEN it goes to the back of the pass
        """
        template_data['hasExpiry'] = True
        template_data['fields']['auxiliary'] = [
            {'key': f'aux{i}', 'label': f'A{i}', 'value': 'x'} for i in range(4)
        ]
        runtime = RuntimeContext(expiry_date=date(2026, 12, 31))
        card = PassDocumentBuilder(config).build(
            PassTemplate.from_dict(template_data), runtime, 's-1'
        ).descriptor['storeCard']

        assert len(card['auxiliaryFields']) == 4
        assert card['backFields'][-1]['key'] == 'expiry'

    def test_no_expiry_without_date(self, config, template_data, runtime):
        """
        GIVEN hasExpiry but no expiry date
        WHEN building the descriptor
        THEN no expiry field or expirationDate is added
        """
        template_data['hasExpiry'] = True
        descriptor = PassDocumentBuilder(config).build(
            PassTemplate.from_dict(template_data), runtime, 's-1'
        ).descriptor

        assert 'expirationDate' not in descriptor
        keys = [f['key'] for f in descriptor['storeCard']['auxiliaryFields']]
        assert 'expiry' not in keys

    def test_web_service_fields(self, p12_path, template, runtime):
        """
        GIVEN a configured web service URL
        WHEN building the descriptor
        THEN webServiceURL and a generated authentication token are included
        """
        config = TestingConfig(p12_path=p12_path, web_service_url='https://passes.example.com/api')
        descriptor = PassDocumentBuilder(config).build(template, runtime, 's-1').descriptor

        assert descriptor['webServiceURL'] == 'https://passes.example.com/api'
        assert len(descriptor['authenticationToken']) == 32

    def test_runtime_authentication_token_is_used(self, p12_path, template):
        config = TestingConfig(p12_path=p12_path, web_service_url='https://passes.example.com/api')
        runtime = RuntimeContext(authentication_token='a' * 32)
        descriptor = PassDocumentBuilder(config).build(template, runtime, 's-1').descriptor
        assert descriptor['authenticationToken'] == 'a' * 32

    def test_json_bytes_are_deterministic(self, config, template, runtime):
        """
        GIVEN the same inputs
        WHEN serializing twice
        THEN pass.json bytes are identical and parse back
        """
        builder = PassDocumentBuilder(config)
        first = builder.build(template, runtime, 's-1').to_json_bytes()
        second = builder.build(template, runtime, 's-1').to_json_bytes()

        assert first == second
        assert json.loads(first)['serialNumber'] == 's-1'


# =============================================================================
# IMAGES
# =============================================================================

@pytest.mark.unit
class TestBuildImages:
    """Test PassDocumentBuilder.build_images."""

    def test_icon_and_square_logo_sizes(self, config, template):
        """
        GIVEN a square logo and an icon
        WHEN rendering images
        THEN every scale has the platform size
        """
        images = PassDocumentBuilder(config).build_images(template)

        assert images.logo_format is LogoFormat.SQUARE
        assert image_size(images.files['icon.png']) == (29, 29)
        assert image_size(images.files['icon@3x.png']) == (87, 87)
        assert image_size(images.files['logo@2x.png']) == (100, 100)
        assert image_size(images.files['logo@3x.png']) == (150, 150)
        assert images.warnings == []

    def test_wide_logo_sizes(self, config, template_data):
        """
        GIVEN a 4:1 logo
        WHEN rendering images
        THEN the wide logo size is used
        """
        template_data['images']['logo'] = make_png((320, 80))
        images = PassDocumentBuilder(config).build_images(PassTemplate.from_dict(template_data))

        assert images.logo_format is LogoFormat.WIDE
        assert image_size(images.files['logo.png']) == (160, 50)
        assert image_size(images.files['logo@3x.png']) == (480, 150)

    def test_missing_images_use_defaults(self, config, template_data):
        """
        GIVEN no icon or logo
        WHEN rendering images
        THEN default artwork is rendered and a warning is recorded for each
        """
        template_data['images'] = {}
        images = PassDocumentBuilder(config).build_images(PassTemplate.from_dict(template_data))

        assert len(images.files) == 6
        assert len(images.warnings) == 2
        assert image_size(images.files['icon@2x.png']) == (58, 58)
