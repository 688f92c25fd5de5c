"""Calendar-side view of a tour's activities

Event positions here are JST wall-clock strings, which is what the calendar
widget works in. They are provisional: the backend's activity list stays the
source of truth.
"""
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from src.tour_console.schemas.activity import Activity
from src.tour_console.services.activity_style import get_activity_style
from src.tour_console.services.jst_time import utc_to_jst_string


@dataclass(frozen=True)
class EventPosition:
    start: str
    end: str


@dataclass
class CalendarEvent:
    id: int
    title: str
    type: str
    position: EventPosition
    color: str
    icon: str
    extended: dict = field(default_factory=dict)

    def to_fullcalendar(self) -> dict:
        return {
            "id": str(self.id),
            "title": self.title,
            "start": self.position.start,
            "end": self.position.end,
            "backgroundColor": self.color,
            "borderColor": self.color,
            "extendedProps": {"type": self.type, "icon": self.icon, **self.extended},
        }


def to_calendar_event(activity: Activity) -> CalendarEvent:
    # A corrupt timestamp raises MalformedTimeError here on purpose
    style = get_activity_style(activity.type)
    return CalendarEvent(
        id=activity.id,
        title=activity.title,
        type=activity.type,
        position=EventPosition(
            start=utc_to_jst_string(activity.start_time),
            end=utc_to_jst_string(activity.end_time),
        ),
        color=style.color,
        icon=style.icon,
        extended={
            "description": activity.description,
            "location_details": activity.location_details,
            "company_name": activity.company_name,
            "survey_url": activity.survey_url,
        },
    )


class CalendarBoard:
    def __init__(self, activities: Iterable[Activity] = ()):
        self._events: dict[int, CalendarEvent] = {}
        self.selection: Optional[EventPosition] = None
        self.load(activities)

    def load(self, activities: Iterable[Activity]) -> None:
        self._events = {a.id: to_calendar_event(a) for a in activities}

    @property
    def events(self) -> list[CalendarEvent]:
        return list(self._events.values())

    def get(self, activity_id: int) -> Optional[CalendarEvent]:
        return self._events.get(activity_id)

    def position(self, activity_id: int) -> EventPosition:
        event = self._events.get(activity_id)
        if event is None:
            raise KeyError(f"Activity {activity_id} is not on the calendar")
        return event.position

    def place(self, activity_id: int, position: EventPosition) -> EventPosition:
        """Move one event and return where it was before"""
        previous = self.position(activity_id)
        self._events[activity_id] = replace(self._events[activity_id], position=position)
        return previous

    def select(self, start: str, end: str) -> None:
        self.selection = EventPosition(start=start, end=end)

    def unselect(self) -> None:
        self.selection = None

    def to_fullcalendar(self) -> list[dict]:
        return [event.to_fullcalendar() for event in self._events.values()]
