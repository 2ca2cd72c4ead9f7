# stampcard/generators/base.py

"""
Base Pass Builder

Abstract base class for pass descriptor builders. Provides the placeholder
variables shared by every platform and the ``{{name}}`` substitution used
for field values, logo text and barcode messages.
"""

import re
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Dict, Any, List, Tuple

from stampcard.models import PassTemplate, RuntimeContext

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r'\{\{(\w+)\}\}')


def format_expiry(expiry) -> Tuple[str, str]:
    """
    Human-readable expiry strings.

    Returns:
        (long form such as 'Dec 31, 2026', short form such as '12/31/26')
    """
    if isinstance(expiry, datetime):
        expiry = expiry.date()
    return (
        f"{expiry.strftime('%b')} {expiry.day}, {expiry.year}",
        expiry.strftime('%m/%d/%y'),
    )


def expiry_timestamp(expiry) -> str:
    """W3C timestamp for the descriptor; bare dates expire at the end of the day (UTC)."""
    if isinstance(expiry, datetime):
        if expiry.tzinfo is None:
            return expiry.strftime('%Y-%m-%dT%H:%M:%S') + '+00:00'
        return expiry.isoformat()
    if isinstance(expiry, date):
        return f"{expiry.isoformat()}T23:59:59+00:00"
    raise TypeError(f"Unsupported expiry value: {expiry!r}")


def render_placeholders(text: str, data: Dict[str, str]) -> Tuple[str, List[str]]:
    """
    Replace ``{{name}}`` tokens with values from ``data``.

    Tokens with no value are left verbatim.

    Args:
        text: text containing placeholders
        data: placeholder values

    Returns:
        (rendered text, list of unresolved placeholder names)
    """
    unresolved = []

    def _replace(match):
        name = match.group(1)
        if name in data:
            return data[name]
        unresolved.append(name)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text or ''), unresolved


def build_template_data(template: PassTemplate, runtime: RuntimeContext,
                        serial_number: str) -> Dict[str, str]:
    """
    Placeholder values available to field values and barcode messages.

    Values the recipient does not have are left out so their placeholders
    stay visible and get reported.

    Args:
        template: pass template
        runtime: recipient values
        serial_number: serial number assigned to this pass

    Returns:
        Dictionary of placeholder name to string value
    """
    required = runtime.stamps_required
    earned = max(0, min(runtime.stamps_earned, required))
    percentage = round(earned / required * 100) if required > 0 else 0

    data = {
        'stampsEarned': str(earned),
        'stampsRequired': str(required),
        'stampsRemaining': str(max(0, required - earned)),
        'progressPercentage': str(percentage),
        'serialNumber': serial_number,
    }

    optional = {
        'points': runtime.points,
        'pointsEarned': runtime.points,
        'customerId': runtime.customer_id,
        'customerName': runtime.customer_name,
        'customerEmail': runtime.customer_email,
        'campaignId': runtime.campaign_id,
        'campaignName': runtime.campaign_name,
        'organizationName': template.organization_name or None,
    }
    for key, value in optional.items():
        if value is not None:
            data[key] = str(value)

    if runtime.expiry_date is not None:
        data['expiryDate'], data['expiryShort'] = format_expiry(runtime.expiry_date)

    for key, value in runtime.extra.items():
        if value is not None and key not in data:
            data[key] = str(value)

    return data


class BasePassBuilder(ABC):
    """
    Abstract base class for pass descriptor builders.

    Platform builders turn a template and a recipient's runtime values
    into the platform's pass descriptor.
    """

    @abstractmethod
    def get_platform_name(self) -> str:
        """Return the platform name (e.g., 'apple')"""
        pass

    @abstractmethod
    def build(self, template: PassTemplate, runtime: RuntimeContext, serial_number: str, **kwargs) -> Any:
        """Build the platform pass descriptor."""
        pass

    def get_template_data(self, template: PassTemplate, runtime: RuntimeContext,
                          serial_number: str) -> Dict[str, str]:
        return build_template_data(template, runtime, serial_number)
