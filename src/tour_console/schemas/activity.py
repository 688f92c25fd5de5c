"""Pydantic schemas for itinerary activities"""
import enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter


class ActivityType(str, enum.Enum):
    COMPANY_VISIT = "CompanyVisit"
    HOTEL = "Hotel"
    RESTAURANT = "Restaurant"
    TRAVEL = "Travel"
    DISCUSSION = "Discussion"


ACTIVITY_TYPE_VALUES = [t.value for t in ActivityType]


class Activity(BaseModel):
    """Activity as returned by the backend.

    ``type`` stays a plain string so that activities with a category this
    console does not know about still load and render.
    """
    id: int
    tour_id: Optional[int] = None
    type: str
    title: str
    description: Optional[str] = None
    start_time: str
    end_time: str
    location_details: Optional[str] = None
    company_id: Optional[int] = None
    company_name: Optional[str] = None
    linked_activity_id: Optional[int] = None
    survey_url: Optional[str] = None
    image_url: Optional[str] = None
    average_rating: Optional[float] = None
    total_reviews: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    class Config:
        extra = "ignore"


class _PayloadBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    start_time: str
    end_time: str
    location_details: Optional[str] = None
    survey_url: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class CompanyVisitPayload(_PayloadBase):
    type: Literal["CompanyVisit"] = "CompanyVisit"
    company_id: Optional[int] = None


class DiscussionPayload(_PayloadBase):
    type: Literal["Discussion"] = "Discussion"
    linked_activity_id: Optional[int] = None


class HotelPayload(_PayloadBase):
    type: Literal["Hotel"] = "Hotel"


class RestaurantPayload(_PayloadBase):
    type: Literal["Restaurant"] = "Restaurant"


class TravelPayload(_PayloadBase):
    type: Literal["Travel"] = "Travel"


ActivityPayload = Annotated[
    Union[CompanyVisitPayload, DiscussionPayload, HotelPayload, RestaurantPayload, TravelPayload],
    Field(discriminator="type"),
]

activity_payload_adapter: TypeAdapter = TypeAdapter(ActivityPayload)


class ActivityTimeUpdate(BaseModel):
    """Partial update sent after a drag or resize on the calendar"""
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class RescheduleRequest(BaseModel):
    """Body the calendar posts after a drag or resize (JST wall-clock times)"""
    start: str = Field(..., min_length=1)
    end: str = Field(..., min_length=1)
