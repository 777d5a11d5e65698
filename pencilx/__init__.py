"""
PencilX AI Gateway
Provider fallback, key rotation and instant answers for the PencilX front-end
"""

__version__ = "1.0.0"
