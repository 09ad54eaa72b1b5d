"""
Session context for tips-core.
"""

from tips_core.context.session import ItemCategory, StaticSessionContext

__all__ = [
    "StaticSessionContext",
    "ItemCategory",
]
