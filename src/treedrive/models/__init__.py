"""SQLModel database models for treedrive."""

from treedrive.models.items import Item, ItemBase, ItemType
from treedrive.models.shares import ItemShare, ItemShareBase, ShareRole
from treedrive.models.users import AppUser, AppUserBase

__all__ = [
    "AppUser",
    "AppUserBase",
    "Item",
    "ItemBase",
    "ItemShare",
    "ItemShareBase",
    "ItemType",
    "ShareRole",
]
