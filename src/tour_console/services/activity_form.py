"""Activity dialog form: field binding, visibility and validation"""
from dataclasses import dataclass, asdict, fields, replace
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from src.tour_console.schemas.activity import (
    Activity,
    ActivityType,
    ACTIVITY_TYPE_VALUES,
    activity_payload_adapter,
)
from src.tour_console.schemas.tour import Company, Tour
from src.tour_console.services.jst_time import (
    MalformedTimeError,
    jst_date_of,
    jst_day_start,
    parse_utc,
    to_utc_string,
)

BASE_FIELDS = ["type", "title", "description", "start_time", "end_time", "location_details", "survey_url"]
REQUIRED_FIELDS = ("type", "title", "start_time", "end_time")

# Fields that only apply to one activity type
TYPE_SPECIFIC_FIELDS = {
    "company_id": ActivityType.COMPANY_VISIT.value,
    "linked_activity_id": ActivityType.DISCUSSION.value,
}


class ActivityValidationError(Exception):
    """Raised before submission when the draft cannot be sent to the backend"""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = field_errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in field_errors.items()))


@dataclass
class ActivityFormData:
    """Dialog fields bound as strings, the way an HTML form posts them.

    ``start_time``/``end_time`` hold UTC ISO strings; the template converts
    them to JST datetime-local values for display.
    """
    type: str = ""
    title: str = ""
    description: str = ""
    start_time: str = ""
    end_time: str = ""
    location_details: str = ""
    company_id: str = ""
    survey_url: str = ""
    linked_activity_id: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityFormData":
        known = {f.name for f in fields(cls)}
        return cls(**{k: "" if v is None else str(v) for k, v in data.items() if k in known})


@dataclass(frozen=True)
class TourBounds:
    """Inclusive JST date range an activity must fall inside"""
    start_date: date
    end_date: date

    @classmethod
    def from_tour(cls, tour: Tour) -> "TourBounds":
        return cls(start_date=jst_date_of(tour.start_date), end_date=jst_date_of(tour.end_date))

    def contains(self, start: datetime, end: datetime) -> bool:
        # An activity may run up to midnight at the close of the last day
        lower = jst_day_start(self.start_date)
        upper = jst_day_start(self.end_date + timedelta(days=1))
        return lower <= start and end <= upper


def form_from_range(start_utc: str, end_utc: str) -> ActivityFormData:
    return ActivityFormData(start_time=start_utc, end_time=end_utc)


def form_from_activity(activity: Activity) -> ActivityFormData:
    return ActivityFormData(
        type=activity.type,
        title=activity.title,
        description=activity.description or "",
        start_time=activity.start_time,
        end_time=activity.end_time,
        location_details=activity.location_details or "",
        company_id=str(activity.company_id) if activity.company_id is not None else "",
        survey_url=activity.survey_url or "",
        linked_activity_id=str(activity.linked_activity_id) if activity.linked_activity_id is not None else "",
    )


def change_type(form: ActivityFormData, new_type: str) -> ActivityFormData:
    """Switch the activity type, clearing fields the new type does not use"""
    cleared = {
        name: "" for name, owner in TYPE_SPECIFIC_FIELDS.items() if owner != new_type
    }
    return replace(form, type=new_type, **cleared)


def visible_fields(activity_type: str) -> list[str]:
    extra = [name for name, owner in TYPE_SPECIFIC_FIELDS.items() if owner == activity_type]
    return BASE_FIELDS[:1] + extra + BASE_FIELDS[1:]


def company_options(companies: Iterable[Company]) -> list[tuple[str, str]]:
    return [(str(c.id), c.name) for c in companies]


def linked_activity_options(
    activities: Iterable[Activity],
    editing_id: Optional[int] = None,
    tour_id: Optional[int] = None,
) -> list[tuple[str, str]]:
    """Company visits a discussion may link to, never the activity being edited"""
    options = []
    for activity in activities:
        if activity.type != ActivityType.COMPANY_VISIT.value:
            continue
        if editing_id is not None and activity.id == editing_id:
            continue
        if tour_id is not None and activity.tour_id is not None and activity.tour_id != tour_id:
            continue
        options.append((str(activity.id), activity.title))
    return options


def _parse_time(value: str, label: str, key: str, errors: dict) -> Optional[datetime]:
    if not value:
        errors[key] = f"{label} is required"
        return None
    try:
        return parse_utc(value)
    except MalformedTimeError:
        errors[key] = f"{label} is not a valid date"
        return None


def _parse_id(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def validate_form(
    form: ActivityFormData,
    bounds: Optional[TourBounds] = None,
    companies: Optional[Iterable[Company]] = None,
    activities: Optional[Iterable[Activity]] = None,
    editing_id: Optional[int] = None,
    tour_id: Optional[int] = None,
):
    """Check the draft and build the type-specific payload for the backend"""
    errors: dict[str, str] = {}

    title = form.title.strip()
    if not title:
        errors["title"] = "Title is required"

    if not form.type:
        errors["type"] = "Activity type is required"
    elif form.type not in ACTIVITY_TYPE_VALUES:
        errors["type"] = f"Unknown activity type: {form.type}"

    start = _parse_time(form.start_time, "Start time", "start_time", errors)
    end = _parse_time(form.end_time, "End time", "end_time", errors)
    if start is not None and end is not None:
        if start >= end:
            errors["end_time"] = "End time must be after start time"
        elif bounds is not None and not bounds.contains(start, end):
            errors["start_time"] = (
                f"Activity must fall within the tour dates "
                f"({bounds.start_date.isoformat()} to {bounds.end_date.isoformat()})"
            )

    company_id = None
    if form.type == ActivityType.COMPANY_VISIT.value and form.company_id:
        company_id = _parse_id(form.company_id)
        if company_id is None:
            errors["company_id"] = "Company is not valid"
        elif companies is not None and company_id not in {c.id for c in companies}:
            errors["company_id"] = "Select an existing company"

    linked_id = None
    if form.type == ActivityType.DISCUSSION.value and form.linked_activity_id:
        linked_id = _parse_id(form.linked_activity_id)
        if linked_id is None:
            errors["linked_activity_id"] = "Linked activity is not valid"
        elif editing_id is not None and linked_id == editing_id:
            errors["linked_activity_id"] = "A discussion cannot be linked to itself"
        elif activities is not None:
            allowed = {value for value, _ in linked_activity_options(activities, editing_id, tour_id)}
            if str(linked_id) not in allowed:
                errors["linked_activity_id"] = "Linked activity must be a company visit in this tour"

    if errors:
        raise ActivityValidationError(errors)

    data = {
        "type": form.type,
        "title": title,
        "description": form.description.strip() or None,
        "start_time": to_utc_string(start),
        "end_time": to_utc_string(end),
        "location_details": form.location_details.strip() or None,
        "survey_url": form.survey_url.strip() or None,
    }
    if form.type == ActivityType.COMPANY_VISIT.value:
        data["company_id"] = company_id
    elif form.type == ActivityType.DISCUSSION.value:
        data["linked_activity_id"] = linked_id
    return activity_payload_adapter.validate_python(data)
