"""Keeps tracker state consistent across memory, the device and the server.

The controller is the only owner of the in-memory collections. While no
session is active it reads and writes the local cache; once authenticated it
fetches the full dataset from the remote store and pushes full datasets back.

Entry mutations are optimistic: the new state is applied before any I/O,
then pushed, then re-fetched so that server-assigned ids replace temporary
ones. Foreground saves run one at a time. A failed push restores the snapshot
taken before the change and replays the background edits made while it was
in flight. While a foreground save or delete is in flight the debounced
autosave is held back and rescheduled once both guard flags clear.
"""

import asyncio
import json
import logging
import math
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import TypeVar

from macro_tracker.adapters.remote_client import RemoteSyncClient
from macro_tracker.domain.errors import (
    AuthRejection,
    EntryNotFound,
    MutationError,
    SyncError,
    TransientSyncError,
    ValidationError,
)
from macro_tracker.domain.nutrition import (
    BUILT_IN_FOODS,
    DEFAULT_GOALS,
    CalculatorData,
    DailyEntry,
    FoodItem,
    Goals,
    MacroTotals,
    ServingUnit,
    UserData,
)
from macro_tracker.domain.payloads import (
    entry_from_payload,
    entry_to_payload,
    food_from_payload,
    food_to_payload,
)
from macro_tracker.domain.results import Err, Ok
from macro_tracker.domain.sessions import SessionState
from macro_tracker.services.integrity import (
    CorruptionReport,
    GoalProgress,
    corruption_report,
    count_corrupted,
    filter_corrupted,
    goal_progress,
    is_valid_number,
    safe_aggregate,
)
from macro_tracker.services.local_cache import (
    CUSTOM_FOODS_KEY,
    DAILY_ENTRIES_KEY,
    LocalCache,
)
from macro_tracker.services.validation import (
    ValidationResult,
    parse_number,
    sanitize_string,
    validate_calculator_data,
    validate_food,
    validate_goals,
    validate_portion_size,
)

_logger = logging.getLogger(__name__)

_MACRO_FIELDS = ("calories", "protein", "carbs", "fat")
_DEFAULT_SERVING_BASE = 100.0
DATA_NOT_LOADED_MESSAGE = "Your data has not loaded yet. Please try again."
SESSION_CHANGED_MESSAGE = "Your session changed before the change was saved."

_Item = TypeVar("_Item")


class PersistenceMode(StrEnum):
    """Where the controller reads and writes its collections."""

    LOCAL = "local"
    REMOTE = "remote"


class TrackerEventKind(StrEnum):
    """Kinds of notifications published to listeners."""

    STATE_CHANGED = "state_changed"
    SYNC_FAILED = "sync_failed"
    CORRUPTION_REMOVED = "corruption_removed"


@dataclass(frozen=True)
class TrackerEvent:
    """Notification for the presentation layer."""

    kind: TrackerEventKind
    detail: str | None = None


@dataclass(frozen=True)
class TrackerState:
    """Immutable snapshot of everything the controller owns."""

    custom_foods: tuple[FoodItem, ...] = ()
    daily_entries: tuple[DailyEntry, ...] = ()
    goals: Goals = DEFAULT_GOALS
    calculator_data: CalculatorData | None = None


TrackerListener = Callable[[TrackerEvent], None]
StateChange = Callable[[TrackerState], TrackerState]


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class ReconciliationController:
    """Owns tracker state and decides persistence, rollback and messaging."""

    remote_client: RemoteSyncClient
    local_cache: LocalCache
    autosave_delay_seconds: float = 1.0
    built_in_foods: tuple[FoodItem, ...] = BUILT_IN_FOODS
    clock: Callable[[], datetime] = field(default=_local_now)
    on_auth_rejected: Callable[[], Awaitable[None]] | None = None
    state: TrackerState = field(default_factory=TrackerState, init=False)
    mode: PersistenceMode = field(default=PersistenceMode.LOCAL, init=False)
    is_deleting: bool = field(default=False, init=False)
    is_manual_saving: bool = field(default=False, init=False)
    _epoch: int = field(default=0, init=False, repr=False)
    _autosave_task: "asyncio.Task[None] | None" = field(
        default=None, init=False, repr=False
    )
    _autosave_pending: bool = field(default=False, init=False, repr=False)
    _remote_loaded: bool = field(default=False, init=False, repr=False)
    _last_temp_id: int = field(default=0, init=False, repr=False)
    _save_lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False
    )
    _saves_in_flight: int = field(default=0, init=False, repr=False)
    _interleaved: list[StateChange] = field(
        default_factory=list, init=False, repr=False
    )
    _listeners: list[TrackerListener] = field(
        default_factory=list, init=False, repr=False
    )

    def add_listener(self, listener: TrackerListener) -> None:
        """Register a callback for tracker events."""
        self._listeners.append(listener)

    async def handle_session_change(self, session_state: SessionState) -> None:
        """Switch persistence target and reload state for the new session."""
        self._epoch += 1
        self._cancel_autosave()
        self._autosave_pending = False
        self._remote_loaded = False
        if session_state is SessionState.AUTHENTICATED:
            self.mode = PersistenceMode.REMOTE
            self._apply(TrackerState())
        else:
            self.mode = PersistenceMode.LOCAL
        _logger.info("Session is %s, using %s storage", session_state, self.mode)
        await self.load()

    async def load(self) -> Ok[TrackerState] | Err[SyncError]:
        """Replace in-memory state with the active store's contents."""
        if self.mode is PersistenceMode.LOCAL:
            return Ok(self._load_local())

        epoch = self._epoch
        result = await self.remote_client.fetch_user_data()
        if epoch != self._epoch:
            _logger.debug("Discarding fetch result from a previous session")
            return Ok(self.state)
        if isinstance(result, Err):
            _logger.warning("Failed to load user data: %s", result.error.message)
            await self._handle_sync_error(result.error)
            return result
        self._remote_loaded = True
        self._replace_from_remote(result.value)
        return Ok(self.state)

    async def add_food_entry(
        self,
        food: FoodItem,
        portion_size: object,
        date: str | None = None,
        meal_time: str | None = None,
    ) -> Ok[DailyEntry] | Err[MutationError]:
        """Log a portion of food for a day."""
        validation = validate_portion_size(portion_size)
        if not validation.is_valid:
            return Err(_validation_error(validation))
        portion = parse_number(portion_size) or 0.0
        built = self._build_entry(food, portion, date, meal_time)
        if isinstance(built, Err):
            return built

        entry = built.value
        outcome = await self._commit_foreground(
            lambda state: replace(state, daily_entries=(*state.daily_entries, entry))
        )
        if isinstance(outcome, Err):
            return outcome
        return Ok(entry)

    async def remove_food_entry(self, entry_id: int) -> Ok[None] | Err[MutationError]:
        """Delete a logged entry via a full-dataset save."""
        self.is_deleting = True
        try:
            if not any(entry.id == entry_id for entry in self.state.daily_entries):
                _logger.error("Entry not found in local state: %s", entry_id)
                return Err(EntryNotFound(entry_id))
            return await self._commit_foreground(
                lambda state: replace(
                    state,
                    daily_entries=tuple(
                        entry for entry in state.daily_entries if entry.id != entry_id
                    ),
                )
            )
        finally:
            self.is_deleting = False
            self._resume_autosave()

    async def add_custom_food(
        self, form: Mapping[str, object]
    ) -> Ok[FoodItem] | Err[MutationError]:
        """Create a custom food from form values."""
        unsynced = self._unsynced()
        if unsynced is not None:
            return unsynced
        built = self._build_custom_food(self._next_temp_id(), form)
        if isinstance(built, Err):
            return built
        food = built.value
        self._commit_background(
            lambda state: replace(state, custom_foods=(*state.custom_foods, food))
        )
        return Ok(food)

    async def update_custom_food(
        self, food_id: int, form: Mapping[str, object]
    ) -> Ok[FoodItem] | Err[MutationError]:
        """Replace a custom food's values."""
        unsynced = self._unsynced()
        if unsynced is not None:
            return unsynced
        found = self._find_custom_food(food_id)
        if isinstance(found, Err):
            return found
        built = self._build_custom_food(food_id, form)
        if isinstance(built, Err):
            return built
        food = built.value
        self._commit_background(
            lambda state: replace(
                state,
                custom_foods=tuple(
                    food if item.id == food_id else item for item in state.custom_foods
                ),
            )
        )
        return Ok(food)

    async def delete_custom_food(self, food_id: int) -> Ok[None] | Err[MutationError]:
        """Delete a custom food; logged entries keep their snapshots."""
        unsynced = self._unsynced()
        if unsynced is not None:
            return unsynced
        found = self._find_custom_food(food_id)
        if isinstance(found, Err):
            return found
        self._commit_background(
            lambda state: replace(
                state,
                custom_foods=tuple(
                    item for item in state.custom_foods if item.id != food_id
                ),
            )
        )
        return Ok(None)

    async def update_goals(
        self, goals: Goals | Mapping[str, object]
    ) -> Ok[Goals] | Err[MutationError]:
        """Overwrite daily goals."""
        validation = validate_goals(goals)
        if not validation.is_valid:
            return Err(_validation_error(validation))
        new_goals = _coerce_goals(goals)
        outcome = await self._commit_foreground(
            lambda state: replace(state, goals=new_goals), persist_locally=False
        )
        if isinstance(outcome, Err):
            return outcome
        return Ok(new_goals)

    async def apply_calculated_goals(
        self, calculator_data: CalculatorData, goals: Goals | Mapping[str, object]
    ) -> Ok[Goals] | Err[MutationError]:
        """Store calculator inputs together with the goals computed from them."""
        errors = [
            *validate_calculator_data(calculator_data).errors,
            *validate_goals(goals).errors,
        ]
        if errors:
            return Err(ValidationError(tuple(errors)))
        new_goals = _coerce_goals(goals)
        outcome = await self._commit_foreground(
            lambda state: replace(
                state, goals=new_goals, calculator_data=calculator_data
            ),
            persist_locally=False,
        )
        if isinstance(outcome, Err):
            return outcome
        return Ok(new_goals)

    async def cleanup_corrupted_entries(self) -> Ok[int] | Err[MutationError]:
        """Remove corrupted entries and custom foods, then persist the rest."""
        removed = self.count_corrupted()
        if removed == 0:
            return Ok(0)
        outcome = await self._commit_foreground(_without_corrupted)
        if isinstance(outcome, Err):
            return outcome
        self._emit(TrackerEventKind.CORRUPTION_REMOVED, str(removed))
        return Ok(removed)

    async def save_now(self) -> Ok[None] | Err[MutationError]:
        """Push the current state immediately."""
        self._cancel_autosave()
        self._autosave_pending = False
        return await self._commit_foreground(lambda state: state)

    async def close(self) -> None:
        """Cancel a pending autosave timer."""
        self._cancel_autosave()

    def all_foods(self) -> list[FoodItem]:
        """Return built-in foods followed by custom foods."""
        return [*self.built_in_foods, *self.state.custom_foods]

    def search_foods(self, term: str) -> list[FoodItem]:
        """Case-insensitive name search across all foods."""
        needle = term.strip().lower()
        return [food for food in self.all_foods() if needle in food.name.lower()]

    def entries_for(self, date: str) -> list[DailyEntry]:
        """Return entries logged for a date."""
        return [entry for entry in self.state.daily_entries if entry.date == date]

    def totals_for(self, date: str) -> MacroTotals:
        """Sum a day's macros, ignoring non-finite fields."""
        return safe_aggregate(self.entries_for(date))

    def progress_for(self, date: str) -> dict[str, GoalProgress]:
        """Progress towards each goal for a day."""
        totals = self.totals_for(date)
        goals = self.state.goals
        return {
            name: goal_progress(getattr(totals, name), getattr(goals, name))
            for name in _MACRO_FIELDS
        }

    def count_corrupted(self) -> int:
        """Number of entries and custom foods that need cleanup."""
        return count_corrupted(self.state.daily_entries, self.state.custom_foods)

    def corruption_report(self) -> CorruptionReport:
        """Corrupted entries and custom foods, for a repair prompt."""
        return corruption_report(self.state.daily_entries, self.state.custom_foods)

    async def _commit_foreground(
        self, change: StateChange, *, persist_locally: bool = True
    ) -> Ok[None] | Err[SyncError]:
        unsynced = self._unsynced()
        if unsynced is not None:
            return unsynced
        if self.mode is PersistenceMode.LOCAL:
            new_state = change(self.state)
            self._apply(new_state)
            if persist_locally:
                self._persist_local(new_state)
            return Ok(None)

        epoch = self._epoch
        self._saves_in_flight += 1
        self.is_manual_saving = True
        try:
            async with self._save_lock:
                if epoch != self._epoch:
                    return Err(TransientSyncError(SESSION_CHANGED_MESSAGE))
                return await self._save_remote(change, epoch)
        finally:
            self._saves_in_flight -= 1
            self.is_manual_saving = self._saves_in_flight > 0
            self._resume_autosave()

    async def _save_remote(
        self, change: StateChange, epoch: int
    ) -> Ok[None] | Err[SyncError]:
        snapshot = self.state
        new_state = change(snapshot)
        self._interleaved.clear()
        self._apply(new_state)

        result = await self._push_state(new_state)
        if epoch != self._epoch:
            _logger.debug("Discarding save result from a previous session")
            return result
        if isinstance(result, Err):
            _logger.warning(
                "Failed to save to server, rolling back: %s", result.error.message
            )
            restored = snapshot
            for later in self._interleaved:
                restored = later(restored)
            self._interleaved.clear()
            self._apply(restored)
            await self._handle_sync_error(result.error)
            return result

        refreshed = await self.remote_client.fetch_user_data()
        self._interleaved.clear()
        if epoch != self._epoch:
            return Ok(None)
        if isinstance(refreshed, Err):
            _logger.warning(
                "Saved, but reloading ids failed: %s", refreshed.error.message
            )
            await self._handle_sync_error(refreshed.error)
        elif self.state is not new_state:
            # Changes made during the save are newer than the server copy.
            _logger.debug("State changed while saving, keeping local changes")
        else:
            self._replace_from_remote(refreshed.value)
        return Ok(None)

    def _commit_background(self, change: StateChange) -> None:
        self._apply(change(self.state))
        if self._saves_in_flight:
            self._interleaved.append(change)
        if self.mode is PersistenceMode.LOCAL:
            self._persist_local(self.state)
        else:
            self._schedule_autosave()

    def _unsynced(self) -> Err[TransientSyncError] | None:
        if self.mode is PersistenceMode.REMOTE and not self._remote_loaded:
            return Err(TransientSyncError(DATA_NOT_LOADED_MESSAGE))
        return None

    async def _push_state(self, state: TrackerState) -> Ok[None] | Err[SyncError]:
        return await self.remote_client.push_user_data(
            custom_foods=list(state.custom_foods),
            daily_entries=list(state.daily_entries),
            goals=state.goals,
            calculator_data=state.calculator_data,
        )

    def _schedule_autosave(self) -> None:
        if self.mode is not PersistenceMode.REMOTE:
            return
        if self.is_deleting or self.is_manual_saving:
            self._autosave_pending = True
            return
        self._cancel_autosave()
        self._autosave_task = asyncio.get_running_loop().create_task(
            self._autosave_after_quiet_period(self._epoch)
        )

    def _cancel_autosave(self) -> None:
        task = self._autosave_task
        self._autosave_task = None
        if task is not None:
            task.cancel()

    def _resume_autosave(self) -> None:
        if self.is_deleting or self.is_manual_saving:
            return
        if self._autosave_pending:
            self._autosave_pending = False
            self._schedule_autosave()

    async def _autosave_after_quiet_period(self, epoch: int) -> None:
        await asyncio.sleep(self.autosave_delay_seconds)
        # The push below is not cancelable; detach so a reschedule leaves it be.
        if self._autosave_task is asyncio.current_task():
            self._autosave_task = None
        if epoch != self._epoch:
            return
        if self.is_deleting or self.is_manual_saving:
            self._autosave_pending = True
            return

        result = await self._push_state(self.state)
        if epoch != self._epoch or isinstance(result, Ok):
            return
        _logger.warning("Autosave failed: %s", result.error.message)
        self._emit(TrackerEventKind.SYNC_FAILED, result.error.message)
        await self._handle_sync_error(result.error)

    async def _handle_sync_error(self, error: SyncError) -> None:
        if isinstance(error, AuthRejection) and self.on_auth_rejected is not None:
            await self.on_auth_rejected()

    def _replace_from_remote(self, data: UserData) -> None:
        loaded = TrackerState(
            custom_foods=tuple(data.custom_foods),
            daily_entries=tuple(data.daily_entries),
            goals=data.goals,
            calculator_data=data.calculator_data,
        )
        clean = _without_corrupted(loaded)
        self._apply(clean)
        removed = _removed_count(loaded, clean)
        if removed:
            _logger.info(
                "Cleaned up %s corrupted records, saving corrected data", removed
            )
            self._emit(TrackerEventKind.CORRUPTION_REMOVED, str(removed))
            self._schedule_autosave()

    def _load_local(self) -> TrackerState:
        foods = _decode_list(self.local_cache.get(CUSTOM_FOODS_KEY), food_from_payload)
        entries = _decode_list(
            self.local_cache.get(DAILY_ENTRIES_KEY), entry_from_payload
        )
        loaded = TrackerState(custom_foods=tuple(foods), daily_entries=tuple(entries))
        clean = _without_corrupted(loaded)
        self._apply(clean)
        removed = _removed_count(loaded, clean)
        if removed:
            _logger.info("Cleaned up %s corrupted records in local cache", removed)
            self._persist_local(self.state)
            self._emit(TrackerEventKind.CORRUPTION_REMOVED, str(removed))
        return self.state

    def _persist_local(self, state: TrackerState) -> None:
        self.local_cache.set(
            CUSTOM_FOODS_KEY,
            json.dumps([food_to_payload(food) for food in state.custom_foods]),
        )
        self.local_cache.set(
            DAILY_ENTRIES_KEY,
            json.dumps([entry_to_payload(entry) for entry in state.daily_entries]),
        )

    def _apply(self, state: TrackerState) -> None:
        self.state = state
        self._emit(TrackerEventKind.STATE_CHANGED)

    def _emit(self, kind: TrackerEventKind, detail: str | None = None) -> None:
        event = TrackerEvent(kind=kind, detail=detail)
        for listener in list(self._listeners):
            listener(event)

    def _next_temp_id(self) -> int:
        candidate = int(self.clock().timestamp() * 1000)
        self._last_temp_id = max(candidate, self._last_temp_id + 1)
        return self._last_temp_id

    def _build_entry(
        self,
        food: FoodItem,
        portion_size: float,
        date: str | None,
        meal_time: str | None,
    ) -> Ok[DailyEntry] | Err[ValidationError]:
        if not all(is_valid_number(getattr(food, name)) for name in _MACRO_FIELDS):
            _logger.error("Food contains invalid values: %s", food)
            return Err(ValidationError(("Selected food has invalid nutritional data",)))

        multiplier = portion_size / _serving_base(food.serving)
        values = {name: getattr(food, name) * multiplier for name in _MACRO_FIELDS}
        if multiplier <= 0 or not all(math.isfinite(v) for v in values.values()):
            _logger.error("Calculated values are not finite: %s", values)
            return Err(
                ValidationError(("Could not calculate nutrition for this portion",))
            )

        now = self.clock()
        return Ok(
            DailyEntry(
                id=self._next_temp_id(),
                food_id=food.id,
                name=food.name,
                portion_size=portion_size,
                unit=food.serving_unit.value,
                date=date or now.date().isoformat(),
                meal_time=meal_time or now.strftime("%H:%M"),
                **values,
            )
        )

    def _build_custom_food(
        self, food_id: int, form: Mapping[str, object]
    ) -> Ok[FoodItem] | Err[ValidationError]:
        sanitized = {**form, "name": sanitize_string(str(form.get("name") or ""))}
        validation = validate_food(sanitized)
        if not validation.is_valid:
            return Err(_validation_error(validation))
        unit = (
            ServingUnit.MILLILITERS
            if form.get("unit") == ServingUnit.MILLILITERS.value
            else ServingUnit.GRAMS
        )
        return Ok(
            FoodItem(
                id=food_id,
                name=str(sanitized["name"]),
                calories=parse_number(form.get("calories")) or 0.0,
                protein=parse_number(form.get("protein")) or 0.0,
                carbs=parse_number(form.get("carbs")) or 0.0,
                fat=parse_number(form.get("fat")) or 0.0,
                serving_unit=unit,
                is_custom=True,
                serving=f"100{unit.value}",
            )
        )

    def _find_custom_food(self, food_id: int) -> Ok[FoodItem] | Err[ValidationError]:
        for food in self.state.custom_foods:
            if food.id == food_id:
                return Ok(food)
        if any(food.id == food_id for food in self.built_in_foods):
            return Err(ValidationError(("Built-in foods cannot be changed",)))
        return Err(ValidationError(("Food not found",)))


def _validation_error(result: ValidationResult) -> ValidationError:
    return ValidationError(tuple(result.errors))


def _without_corrupted(state: TrackerState) -> TrackerState:
    return replace(
        state,
        custom_foods=tuple(filter_corrupted(state.custom_foods)),
        daily_entries=tuple(filter_corrupted(state.daily_entries)),
    )


def _removed_count(before: TrackerState, after: TrackerState) -> int:
    return (
        len(before.custom_foods)
        - len(after.custom_foods)
        + len(before.daily_entries)
        - len(after.daily_entries)
    )


def _coerce_goals(
goals: Goals | Mapping[str, object]) -> Goals:
    if isinstance(goals, Goals):
        return goals
    return Goals(
        calories=round(parse_number(goals.get("calories")) or 0),
        protein=round(parse_number(goals.get("protein")) or 0),
        carbs=round(parse_number(goals.get("carbs")) or 0),
        fat=round(parse_number(goals.get("fat")) or 0),
    )


def _serving_base(serving: str) -> float:
    digits = re.sub(r"[^\d.]", "", serving)
    try:
        base = float(digits)
    except ValueError:
        return _DEFAULT_SERVING_BASE
    return base if base > 0 else _DEFAULT_SERVING_BASE


def _decode_list(
    raw: str | None, decoder: Callable[[dict[str, object]], _Item]
) -> list[_Item]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        _logger.warning("Ignoring unreadable local cache blob")
        return []
    if not isinstance(data, list):
        return []
    return [decoder(row) for row in data if isinstance(row, dict)]
