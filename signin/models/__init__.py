"""Database models for the sign-in service."""

from signin.models.user import User, UserLocation
from signin.models.group import Group, GroupMember
from signin.models.location import Location, LocationGroup
from signin.models.key import Key, KeyLocation
from signin.models.checkin import Checkin, DIRECTIONS
from signin.models.asset import Asset

__all__ = [
    "User",
    "UserLocation",
    "Group",
    "GroupMember",
    "Location",
    "LocationGroup",
    "Key",
    "KeyLocation",
    "Checkin",
    "DIRECTIONS",
    "Asset",
]
