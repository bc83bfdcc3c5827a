"""
API Routes Package
"""
from vswitch.api.routes import switches

__all__ = [
    "switches",
]
