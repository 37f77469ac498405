"""
API Routes Package
"""
from . import (
    actions,
    health,
    swf,
)
