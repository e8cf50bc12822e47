"""
User models - only the projection of a user the report lifecycle touches.
Profiles, passwords and sign-up live in the auth service.
"""

from pydantic import BaseModel
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    CITIZEN = "citizen"
    GREEN_CHAMPION = "green_champion"
    WASTE_WORKER = "waste_worker"
    ADMIN = "admin"


# Roles allowed to submit reports
CITIZEN_ROLES = (UserRole.CITIZEN.value, UserRole.GREEN_CHAMPION.value)


class RewardTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class WorkerResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
