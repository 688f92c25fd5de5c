"""Pydantic schemas for tours, companies and console users"""
import enum
from typing import Optional, Union
from pydantic import BaseModel


class TourStatus(str, enum.Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    COMPLETED = "Completed"


class Tour(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    start_date: str
    end_date: str
    status: TourStatus = TourStatus.DRAFT
    survey_url: Optional[str] = None
    theme_primary_color: Optional[str] = None
    theme_logo_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    class Config:
        extra = "ignore"


class Company(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    class Config:
        extra = "ignore"


class UserRole(str, enum.Enum):
    ADMIN = "Admin"
    USER = "User"
    GUIDE = "Guide"


class ConsoleUser(BaseModel):
    id: Union[str, int]
    email: str
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.USER

    class Config:
        extra = "ignore"

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email
