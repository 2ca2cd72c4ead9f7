# stampcard/generators/apple.py

"""
Apple Wallet Pass Document Builder

Builds the pass.json descriptor for a stamp card (storeCard style) using
the wallet library's field and barcode models, and renders the icon and
logo images the descriptor refers to.

Field counts and content are checked by the compliance validator before
this runs; the builder only substitutes placeholders and applies the
conditional rules (wide logos hide the logo text, expiry is shown only
when the template asks for it and a date exists).
"""

import json
import secrets
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from PIL import Image
from wallet.models import Barcode, StoreCard, Field, Alignment, DateField, DateStyle

from stampcard.colors import parse_color, to_rgb_string
from stampcard.compositor.assets import (
    AssetResolver, ICON_SIZE, LOGO_SIZES, default_icon, default_logo,
    logo_format_for, render_scaled_set
)
from stampcard.config import Config
from stampcard.models import FIELD_SECTIONS, FieldSpec, LogoFormat, PassTemplate, RuntimeContext
from stampcard.validation.barcodes import passkit_format

from .base import BasePassBuilder, build_template_data, expiry_timestamp, render_placeholders

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
PASS_STYLE = 'storeCard'
EXPIRY_FIELD_KEY = 'expiry'
EXPIRY_FIELD_LABEL = 'EXPIRES'
MAX_AUXILIARY_FIELDS = 4

# Attributes that stay in the JSON even when empty
_REQUIRED_FIELD_KEYS = ('key', 'value')


@dataclass
class PassDocument:
    """Descriptor built for one recipient."""
    descriptor: Dict[str, Any]
    logo_format: LogoFormat
    unresolved_placeholders: List[str] = field(default_factory=list)

    def to_json_bytes(self) -> bytes:
        """Deterministic pass.json bytes (sorted keys, two-space indent)."""
        return json.dumps(self.descriptor, indent=2, sort_keys=True).encode('utf-8')


@dataclass
class ImageSet:
    """icon and logo PNGs at every scale."""
    files: Dict[str, bytes]
    logo_format: LogoFormat
    warnings: List[str] = field(default_factory=list)


def _model_to_dict(model) -> Dict[str, Any]:
    """Serialize a wallet model, dropping unset attributes."""
    return {
        key: value for key, value in vars(model).items()
        if key in _REQUIRED_FIELD_KEYS or value not in (None, '')
    }


class PassDocumentBuilder(BasePassBuilder):
    """
    Builds Apple Wallet storeCard descriptors.

    Args:
        config: engine configuration (identity defaults, web service)
        resolver: resolver for icon and logo references
    """

    def __init__(self, config: Config, resolver: AssetResolver = None):
        self.config = config
        self.resolver = resolver or AssetResolver(timeout=config.asset_timeout)

    def get_platform_name(self) -> str:
        return 'apple'

    def build(self, template: PassTemplate, runtime: RuntimeContext, serial_number: str,
              logo_format: LogoFormat = LogoFormat.SQUARE, **kwargs) -> PassDocument:
        """
        Build the pass descriptor.

        Args:
            template: pass template
            runtime: recipient values
            serial_number: serial number for this pass
            logo_format: format of the resolved logo; wide logos hide logoText

        Returns:
            PassDocument with the descriptor and any unresolved placeholders
        """
        data = build_template_data(template, runtime, serial_number)
        unresolved = []

        card_info = StoreCard()
        for section in FIELD_SECTIONS:
            target = getattr(card_info, f'{section}Fields')
            for spec in template.section(section):
                pass_field, missing = self._create_pass_field(spec, data)
                unresolved.extend(missing)
                target.append(pass_field)

        expiry_field = self._create_expiry_field(template, runtime)
        if expiry_field is not None:
            if len(card_info.auxiliaryFields) < MAX_AUXILIARY_FIELDS:
                card_info.auxiliaryFields.append(expiry_field)
            else:
                card_info.backFields.append(expiry_field)

        descriptor = {
            'formatVersion': FORMAT_VERSION,
            'passTypeIdentifier': template.pass_type_identifier or self.config.pass_type_identifier,
            'serialNumber': serial_number,
            'teamIdentifier': template.team_identifier or self.config.team_identifier,
            'organizationName': template.organization_name or self.config.organization_name,
            'description': template.description,
            'foregroundColor': to_rgb_string(template.colors.foreground),
            'backgroundColor': to_rgb_string(template.colors.background),
            'labelColor': to_rgb_string(template.colors.label),
            PASS_STYLE: self._card_to_dict(card_info),
        }

        if template.logo_text:
            if logo_format is LogoFormat.WIDE:
                logger.debug("Wide logo: omitting logoText")
            else:
                logo_text, missing = render_placeholders(template.logo_text, data)
                unresolved.extend(missing)
                descriptor['logoText'] = logo_text

        if template.barcode is not None:
            barcode, missing = self._create_barcode(template, data)
            unresolved.extend(missing)
            barcode_dict = _model_to_dict(barcode)
            descriptor['barcode'] = barcode_dict
            descriptor['barcodes'] = [dict(barcode_dict)]

        if expiry_field is not None:
            descriptor['expirationDate'] = expiry_timestamp(runtime.expiry_date)

        if self.config.web_service_url:
            descriptor['webServiceURL'] = self.config.web_service_url
            descriptor['authenticationToken'] = runtime.authentication_token or secrets.token_hex(16)

        if unresolved:
            logger.warning(f"Pass {serial_number} has unresolved placeholders: {sorted(set(unresolved))}")

        return PassDocument(
            descriptor=descriptor,
            logo_format=logo_format,
            unresolved_placeholders=sorted(set(unresolved)),
        )

    def build_images(self, template: PassTemplate) -> ImageSet:
        """
        Render icon and logo at 1x, 2x and 3x.

        Missing or unreadable icon/logo references get deterministic
        defaults and a warning.

        Returns:
            ImageSet with icon*.png and logo*.png and the logo format
        """
        warnings = []
        background = parse_color(template.colors.background)
        foreground = parse_color(template.colors.foreground)

        icon = self.resolver.resolve(template.images.icon, 'icon', warnings, required=True)
        if icon is None:
            icon = default_icon(background, foreground)

        logo = self.resolver.resolve(template.images.logo, 'logo', warnings, required=True)
        if logo is None:
            logo = default_logo(foreground)

        logo_format = logo_format_for(logo)
        files = {}
        files.update(render_scaled_set(icon, 'icon', ICON_SIZE))
        files.update(render_scaled_set(logo, 'logo', LOGO_SIZES[logo_format]))
        logger.debug(f"Rendered icon and {logo_format.value} logo ({len(files)} files)")
        return ImageSet(files=files, logo_format=logo_format, warnings=warnings)

    def _card_to_dict(self, card_info: StoreCard) -> Dict[str, Any]:
        card = {}
        for section in FIELD_SECTIONS:
            fields = getattr(card_info, f'{section}Fields')
            if fields:
                card[f'{section}Fields'] = [_model_to_dict(f) for f in fields]
        return card

    def _create_pass_field(self, spec: FieldSpec, data: Dict[str, str]):
        value, unresolved = render_placeholders(spec.value, data)
        pass_field = Field(spec.key, value, spec.label)
        pass_field.textAlignment = self._get_alignment(spec.alignment)
        return pass_field, unresolved

    def _create_expiry_field(self, template: PassTemplate, runtime: RuntimeContext) -> Optional[DateField]:
        if not template.has_expiry or runtime.expiry_date is None:
            return None
        existing = {spec.key for _, spec in template.all_fields()}
        if EXPIRY_FIELD_KEY in existing:
            logger.debug("Template defines its own expiry field; not adding another")
            return None

        expiry_field = DateField(EXPIRY_FIELD_KEY, expiry_timestamp(runtime.expiry_date), EXPIRY_FIELD_LABEL)
        expiry_field.dateStyle = DateStyle.SHORT
        expiry_field.timeStyle = DateStyle.NONE
        expiry_field.textAlignment = Alignment.NATURAL
        return expiry_field

    def _create_barcode(self, template: PassTemplate, data: Dict[str, str]):
        spec = template.barcode
        message, unresolved = render_placeholders(spec.message_template, data)
        barcode = Barcode(message=message, format=passkit_format(spec.format))
        barcode.messageEncoding = spec.encoding
        barcode.altText = spec.alt_text
        return barcode, unresolved

    def _get_alignment(self, alignment_str: str) -> str:
        """
        Convert a template alignment to the Apple Wallet constant.

        Accepts either PassKit constants or the editor's short names.
        """
        alignment_map = {
            'natural': Alignment.NATURAL,
            'left': Alignment.LEFT,
            'center': Alignment.CENTER,
            'right': Alignment.RIGHT,
            Alignment.NATURAL: Alignment.NATURAL,
            Alignment.LEFT: Alignment.LEFT,
            Alignment.CENTER: Alignment.CENTER,
            Alignment.RIGHT: Alignment.RIGHT,
        }
        return alignment_map.get(alignment_str or 'natural', Alignment.NATURAL)
