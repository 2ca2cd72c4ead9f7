# stampcard/__init__.py

"""
Stamp card wallet pass engine.

Builds, validates, signs and archives loyalty stamp card passes.
"""

__version__ = '1.0.0'
