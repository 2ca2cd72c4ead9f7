# stampcard/generators/__init__.py

"""
Pass descriptor builders.
"""

from stampcard.generators.apple import PassDocument, PassDocumentBuilder
from stampcard.generators.base import BasePassBuilder, build_template_data, render_placeholders

__all__ = [
    'BasePassBuilder',
    'PassDocument',
    'PassDocumentBuilder',
    'build_template_data',
    'render_placeholders',
]
