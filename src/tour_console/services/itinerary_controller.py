"""Itinerary editing session

One controller instance drives one open itinerary page:

    idle --select range--> editing_draft (new)
    idle --click event---> editing_draft (existing)
    editing_draft --submit/delete--> submitting --ok--> idle
                                                --error--> editing_draft
    editing_draft --cancel--> idle
    idle --drag/resize--> submitting --ok--> idle
                                     --error--> reverting --> idle

Persistence goes through the injected ActivityOperations; the controller
never talks to the network itself and never assumes a write succeeded
before the call returns.
"""
import enum
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Awaitable, Callable, Iterable, Optional, Protocol

from src.tour_console.schemas.activity import Activity, ActivityTimeUpdate
from src.tour_console.schemas.tour import Company
from src.tour_console.services.activity_form import (
    ActivityFormData,
    ActivityValidationError,
    TYPE_SPECIFIC_FIELDS,
    TourBounds,
    change_type,
    company_options,
    form_from_activity,
    form_from_range,
    linked_activity_options,
    validate_form,
)
from src.tour_console.services.calendar_board import CalendarBoard, EventPosition
from src.tour_console.services.jst_time import (
    DateLike,
    MalformedTimeError,
    from_datetime_local_value,
    jst_date_to_utc,
    parse_utc,
    utc_to_jst_string,
)
from src.tour_console.services.tour_api import BackendError

logger = logging.getLogger(__name__)


class EditorState(str, enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    EDITING_DRAFT = "editing_draft"
    SUBMITTING = "submitting"
    REVERTING = "reverting"


class DraftMode(str, enum.Enum):
    NEW = "new"
    EXISTING = "existing"


class EditorStateError(Exception):
    """Raised when an action is not allowed in the current editor state"""
    pass


class ActivityNotFoundError(EditorStateError):
    pass


class ActivityOperations(Protocol):
    async def create(self, payload) -> Activity: ...

    async def update(self, activity_id: int, changes) -> Activity: ...

    async def delete(self, activity_id: int) -> None: ...


@dataclass
class Draft:
    mode: DraftMode
    form: ActivityFormData
    activity_id: Optional[int] = None
    error: Optional[str] = None
    field_errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return self.mode == DraftMode.NEW

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "form": self.form.to_dict(),
            "activity_id": self.activity_id,
            "error": self.error,
            "field_errors": dict(self.field_errors),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Draft":
        return cls(
            mode=DraftMode(data["mode"]),
            form=ActivityFormData.from_dict(data.get("form") or {}),
            activity_id=data.get("activity_id"),
            error=data.get("error"),
            field_errors=dict(data.get("field_errors") or {}),
        )


class ActionStatus(str, enum.Enum):
    SAVED = "saved"
    DELETED = "deleted"
    INVALID = "invalid"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class ActionResult:
    status: ActionStatus
    activity: Optional[Activity] = None
    error: Optional[str] = None
    field_errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in (ActionStatus.SAVED, ActionStatus.DELETED)


# Optimistic drag/resize bookkeeping

class ChangeStatus(str, enum.Enum):
    APPLIED_LOCALLY = "applied_locally"
    CONFIRMED = "confirmed"
    REVERTING = "reverting"
    REVERTED = "reverted"


@dataclass(frozen=True)
class PendingChange:
    activity_id: int
    previous: EventPosition
    proposed: EventPosition
    status: ChangeStatus = ChangeStatus.APPLIED_LOCALLY
    error: Optional[str] = None

    @property
    def current(self) -> EventPosition:
        return self.proposed if self.status in (ChangeStatus.APPLIED_LOCALLY, ChangeStatus.CONFIRMED) else self.previous


_CHANGE_TRANSITIONS = {
    (ChangeStatus.APPLIED_LOCALLY, "confirm"): ChangeStatus.CONFIRMED,
    (ChangeStatus.APPLIED_LOCALLY, "fail"): ChangeStatus.REVERTING,
    (ChangeStatus.REVERTING, "reverted"): ChangeStatus.REVERTED,
}


def reduce_change(change: PendingChange, event: str, error: Optional[str] = None) -> PendingChange:
    next_status = _CHANGE_TRANSITIONS.get((change.status, event))
    if next_status is None:
        raise EditorStateError(f"Cannot apply '{event}' to a change that is {change.status.value}")
    return replace(change, status=next_status, error=error or change.error)


class ItineraryController:
    def __init__(
        self,
        operations: ActivityOperations,
        activities: Iterable[Activity] = (),
        companies: Iterable[Company] = (),
        bounds: Optional[TourBounds] = None,
        tour_id: Optional[int] = None,
        on_changed: Optional[Callable[[], Awaitable[Optional[list[Activity]]]]] = None,
        draft: Optional[Draft] = None,
    ):
        self._operations = operations
        self._on_changed = on_changed
        self.activities = list(activities)
        self.companies = list(companies)
        self.bounds = bounds
        self.tour_id = tour_id
        self.board = CalendarBoard(self.activities)
        self.draft = draft
        self.state = EditorState.EDITING_DRAFT if draft is not None else EditorState.IDLE
        self.last_change: Optional[PendingChange] = None

    def _require(self, *states: EditorState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise EditorStateError(f"Action not allowed while {self.state.value} (expected {allowed})")

    def _find_activity(self, activity_id: int) -> Activity:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        raise ActivityNotFoundError(f"Activity {activity_id} not found")

    def replace_activities(self, activities: Iterable[Activity]) -> None:
        self.activities = list(activities)
        self.board.load(self.activities)

    async def _refresh(self) -> None:
        if self._on_changed is None:
            return
        try:
            refreshed = await self._on_changed()
        except BackendError as e:
            logger.warning(f"Saved, but reloading activities failed: {e}")
            return
        if refreshed is not None:
            self.replace_activities(refreshed)

    # Selection and dialog

    def begin_selection(self, start: DateLike, end: DateLike) -> None:
        self._require(EditorState.IDLE, EditorState.SELECTING)
        self.board.select(utc_to_jst_string(jst_date_to_utc(start)), utc_to_jst_string(jst_date_to_utc(end)))
        self.state = EditorState.SELECTING

    def select_range(self, start: DateLike, end: DateLike) -> Draft:
        self._require(EditorState.IDLE, EditorState.SELECTING)
        start_utc = jst_date_to_utc(start)
        end_utc = jst_date_to_utc(end)
        self.board.unselect()
        self.draft = Draft(mode=DraftMode.NEW, form=form_from_range(start_utc, end_utc))
        self.state = EditorState.EDITING_DRAFT
        return self.draft

    def open_activity(self, activity_id: int) -> Draft:
        self._require(EditorState.IDLE)
        activity = self._find_activity(activity_id)
        self.draft = Draft(
            mode=DraftMode.EXISTING,
            form=form_from_activity(activity),
            activity_id=activity.id,
        )
        self.state = EditorState.EDITING_DRAFT
        return self.draft

    def cancel(self) -> None:
        if self.state in (EditorState.SUBMITTING, EditorState.REVERTING):
            raise EditorStateError("Cannot cancel while a save is in progress")
        self.board.unselect()
        self.draft = None
        self.state = EditorState.IDLE

    def change_type(self, new_type: str) -> None:
        self._require(EditorState.EDITING_DRAFT)
        self.draft.form = change_type(self.draft.form, new_type)

    def update_field(self, name: str, value: str) -> None:
        self._require(EditorState.EDITING_DRAFT)
        if name == "type":
            self.change_type(value)
            return
        if name not in {f.name for f in fields(ActivityFormData)}:
            raise ValueError(f"Unknown activity field: {name}")
        setattr(self.draft.form, name, value)

    def set_local_time(self, name: str, local_value: str) -> None:
        """Bind a JST datetime-local input to the draft's UTC start/end"""
        if name not in ("start_time", "end_time"):
            raise ValueError(f"Not a time field: {name}")
        self.update_field(name, from_datetime_local_value(local_value))

    def apply_form(self, values: dict[str, str]) -> bool:
        """Bind a posted dialog form to the draft.

        Times arrive as JST datetime-local strings. Returns False, with the
        offending fields recorded on the draft, when a time cannot be read.
        """
        self._require(EditorState.EDITING_DRAFT)
        errors = {}
        if "type" in values:
            self.change_type(values["type"] or "")
        for name, value in values.items():
            if name == "type":
                continue
            if TYPE_SPECIFIC_FIELDS.get(name, self.draft.form.type) != self.draft.form.type:
                continue
            if name in ("start_time", "end_time"):
                try:
                    self.set_local_time(name, value or "")
                except MalformedTimeError as e:
                    errors[name] = str(e)
                continue
            self.update_field(name, value or "")
        self.draft.field_errors = errors
        self.draft.error = "Please fix the highlighted fields" if errors else None
        return not errors

    def company_options(self) -> list[tuple[str, str]]:
        return company_options(self.companies)

    def linked_activity_options(self) -> list[tuple[str, str]]:
        editing_id = self.draft.activity_id if self.draft else None
        return linked_activity_options(self.activities, editing_id, self.tour_id)

    async def submit(self) -> ActionResult:
        if self.state == EditorState.SUBMITTING:
            logger.debug("Ignoring submit while a save is in flight")
            return ActionResult(status=ActionStatus.IGNORED)
        self._require(EditorState.EDITING_DRAFT)

        draft = self.draft
        try:
            payload = validate_form(
                draft.form,
                bounds=self.bounds,
                companies=self.companies,
                activities=self.activities,
                editing_id=draft.activity_id,
                tour_id=self.tour_id,
            )
        except ActivityValidationError as e:
            draft.field_errors = e.field_errors
            draft.error = "Please fix the highlighted fields"
            return ActionResult(status=ActionStatus.INVALID, field_errors=e.field_errors)

        draft.field_errors = {}
        draft.error = None
        self.state = EditorState.SUBMITTING
        try:
            if draft.is_new:
                saved = await self._operations.create(payload)
            else:
                saved = await self._operations.update(draft.activity_id, payload)
        except BackendError as e:
            logger.warning(f"Failed to save activity: {e}")
            draft.error = str(e)
            self.state = EditorState.EDITING_DRAFT
            return ActionResult(status=ActionStatus.FAILED, error=str(e))
        except Exception:
            # Leave the dialog usable before letting the error surface
            self.state = EditorState.EDITING_DRAFT
            raise

        self.draft = None
        self.state = EditorState.IDLE
        await self._refresh()
        return ActionResult(status=ActionStatus.SAVED, activity=saved)

    async def delete(self, confirmed: bool) -> ActionResult:
        if self.state == EditorState.SUBMITTING:
            return ActionResult(status=ActionStatus.IGNORED)
        self._require(EditorState.EDITING_DRAFT)
        draft = self.draft
        if draft.is_new:
            raise EditorStateError("Only saved activities can be deleted")
        if not confirmed:
            return ActionResult(status=ActionStatus.IGNORED)

        self.state = EditorState.SUBMITTING
        try:
            await self._operations.delete(draft.activity_id)
        except BackendError as e:
            logger.warning(f"Failed to delete activity {draft.activity_id}: {e}")
            draft.error = str(e)
            self.state = EditorState.EDITING_DRAFT
            return ActionResult(status=ActionStatus.FAILED, error=str(e))
        except Exception:
            self.state = EditorState.EDITING_DRAFT
            raise

        self.draft = None
        self.state = EditorState.IDLE
        await self._refresh()
        return ActionResult(status=ActionStatus.DELETED)

    # Drag and resize

    async def move_activity(self, activity_id: int, start: DateLike, end: DateLike) -> PendingChange:
        return await self._reschedule(activity_id, start, end)

    async def resize_activity(self, activity_id: int, start: DateLike, end: DateLike) -> PendingChange:
        return await self._reschedule(activity_id, start, end)

    def _local_error(self, start_utc: str, end_utc: str) -> Optional[str]:
        start = parse_utc(start_utc)
        end = parse_utc(end_utc)
        if start >= end:
            return "End time must be after start time"
        if self.bounds is not None and not self.bounds.contains(start, end):
            return "Activity must stay within the tour dates"
        return None

    def _revert(self, change: PendingChange, error: str) -> PendingChange:
        change = reduce_change(change, "fail", error)
        self.state = EditorState.REVERTING
        self.board.place(change.activity_id, change.previous)
        change = reduce_change(change, "reverted")
        self.state = EditorState.IDLE
        return change

    async def _reschedule(self, activity_id: int, start: DateLike, end: DateLike) -> PendingChange:
        self._require(EditorState.IDLE)
        self._find_activity(activity_id)

        start_utc = jst_date_to_utc(start)
        end_utc = jst_date_to_utc(end)
        proposed = EventPosition(start=utc_to_jst_string(start_utc), end=utc_to_jst_string(end_utc))
        previous = self.board.place(activity_id, proposed)
        change = PendingChange(activity_id=activity_id, previous=previous, proposed=proposed)

        local_error = self._local_error(start_utc, end_utc)
        if local_error:
            change = self._revert(change, local_error)
            self.last_change = change
            return change

        changes = ActivityTimeUpdate(
            start_time=start_utc if proposed.start != previous.start else None,
            end_time=end_utc if proposed.end != previous.end else None,
        )
        if not changes.to_wire():
            change = reduce_change(change, "confirm")
            self.last_change = change
            return change

        self.state = EditorState.SUBMITTING
        try:
            await self._operations.update(activity_id, changes)
        except BackendError as e:
            logger.warning(f"Failed to reschedule activity {activity_id}: {e}")
            change = self._revert(change, str(e))
            self.last_change = change
            return change
        except Exception:
            self.last_change = self._revert(change, "Unexpected error while saving")
            raise

        change = reduce_change(change, "confirm")
        self.state = EditorState.IDLE
        self.last_change = change
        await self._refresh()
        return change
