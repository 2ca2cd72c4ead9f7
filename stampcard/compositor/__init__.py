# stampcard/compositor/__init__.py

"""
Raster output for pass bundles: stamp strips, icons and logos.
"""

from stampcard.compositor.assets import AssetResolver, logo_format_for, render_scaled_set
from stampcard.compositor.stamps import StampRenderer, stamp_states
from stampcard.compositor.strip import StampCompositor, StripResult

__all__ = [
    'AssetResolver',
    'StampCompositor',
    'StampRenderer',
    'StripResult',
    'logo_format_for',
    'render_scaled_set',
    'stamp_states',
]
