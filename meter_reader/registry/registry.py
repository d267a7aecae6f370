"""
Meter Registry

Owns the meters, the reading log and the monthly reset day.

DESIGN DECISION: The registry is a repository with a save-after-mutate
discipline. State is loaded from the key-value store once at startup and
the changed collection is written back after every successful mutation.

GUARANTEES:
- Meter numbers are unique among live meters
- Readings are append-only; they only disappear with their meter
- A failed operation changes nothing, in memory or in storage
"""

from datetime import datetime
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import TypeAdapter, ValidationError

from meter_reader.config import get_settings
from meter_reader.config.settings import StorageSettings
from meter_reader.consumption import (
    clamp_reset_day,
    current_period_start,
    summarize,
)
from meter_reader.models.meter import (
    ImportResult,
    Meter,
    MeterSummary,
    Reading,
    ValidationResult,
    now_to_second,
    reserve_reading_ids,
    to_local_naive,
)
from meter_reader.services.storage import CorruptDataError, KeyValueStore, StorageError
from meter_reader.validation import MeterValidator

logger = structlog.get_logger(__name__)

_METERS = TypeAdapter(list[Meter])
_READINGS = TypeAdapter(list[Reading])


class RegistryError(Exception):
    """Base exception for registry operations."""
    pass


class InvalidInputError(RegistryError):
    """A user-supplied field is empty or malformed."""

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        self.result = result
        super().__init__(message)


class DuplicateMeterNumberError(RegistryError):
    """Another live meter already uses this number."""

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"A meter with number {number} already exists")


class NotFoundError(RegistryError):
    """No meter with the given id."""
    pass


class MeterRegistry:
    """
    In-memory meters and readings backed by a key-value store.

    Pass `store=None` for a purely in-memory registry.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        storage_settings: Optional[StorageSettings] = None,
        default_reset_day: int = 1,
        validator: Optional[MeterValidator] = None,
        clock: Callable[[], datetime] = now_to_second,
    ):
        self._store = store
        self._keys = storage_settings or get_settings().storage
        self._validator = validator or MeterValidator()
        self._clock = clock
        self._meters: list[Meter] = []
        self._readings: list[Reading] = []
        self._reset_day = clamp_reset_day(default_reset_day)
        self._load_error: Optional[str] = None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """
        Read meters, readings and the reset day from the store.

        Readings that point at a meter that no longer exists are dropped.
        If loading fails the registry stays read-only: writing would replace
        the unreadable history with the (empty) in-memory state.

        Raises:
            CorruptDataError: If a stored collection cannot be decoded
            StorageError: If the store cannot be read
        """
        if self._store is None:
            return

        self._load_error = "Stored data has not been loaded yet"
        raw_meters = self._store.get(self._keys.meters_key)
        raw_readings = self._store.get(self._keys.readings_key)
        raw_reset_day = self._store.get(self._keys.reset_day_key)

        try:
            meters = _METERS.validate_json(raw_meters) if raw_meters else []
            readings = _READINGS.validate_json(raw_readings) if raw_readings else []
        except ValidationError as e:
            self._load_error = f"Stored meter data is unreadable: {e}"
            raise CorruptDataError(self._load_error)

        live_ids = {m.id for m in meters}
        kept = [r for r in readings if r.meter_id in live_ids]
        if len(kept) != len(readings):
            logger.warning(
                "orphan_readings_dropped",
                dropped=len(readings) - len(kept),
            )

        if raw_reset_day:
            try:
                self._reset_day = clamp_reset_day(int(raw_reset_day))
            except ValueError:
                logger.warning("reset_day_unreadable", value=raw_reset_day)

        self._meters = meters
        self._readings = kept
        self._load_error = None
        if kept:
            reserve_reading_ids(max(r.id for r in kept))

        logger.info(
            "registry_loaded",
            meters=len(self._meters),
            readings=len(self._readings),
            reset_day=self._reset_day,
        )

    @property
    def is_writable(self) -> bool:
        return self._load_error is None

    def _persist(
        self,
        meters: Optional[list[Meter]] = None,
        readings: Optional[list[Reading]] = None,
        reset_day: Optional[int] = None,
    ) -> None:
        """
        Write the given collections; callers commit in memory afterwards.

        Readings go first so an interrupted add never leaves a stored meter
        without its initial reading. If a later key fails, the keys already
        written are restored from the current in-memory state.

        Raises:
            StorageError: Write failed, or the stored data was never loaded
        """
        if self._store is None:
            return
        if self._load_error is not None:
            raise StorageError(
                f"Refusing to overwrite stored data that could not be loaded: {self._load_error}"
            )

        writes: list[tuple[str, str, str]] = []
        if readings is not None:
            writes.append((
                self._keys.readings_key,
                _READINGS.dump_json(readings, by_alias=True).decode("utf-8"),
                _READINGS.dump_json(self._readings, by_alias=True).decode("utf-8"),
            ))
        if meters is not None:
            writes.append((
                self._keys.meters_key,
                _METERS.dump_json(meters, by_alias=True).decode("utf-8"),
                _METERS.dump_json(self._meters, by_alias=True).decode("utf-8"),
            ))
        if reset_day is not None:
            writes.append((
                self._keys.reset_day_key,
                str(reset_day),
                str(self._reset_day),
            ))

        written: list[tuple[str, str]] = []
        for key, value, previous in writes:
            try:
                self._store.set(key, value)
            except StorageError:
                self._rollback(written)
                raise
            written.append((key, previous))

    def _rollback(self, written: list[tuple[str, str]]) -> None:
        for key, previous in reversed(written):
            try:
                self._store.set(key, previous)
            except StorageError as e:
                logger.error("storage_rollback_failed", key=key, error=str(e))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def meters(self) -> list[Meter]:
        return list(self._meters)

    @property
    def readings(self) -> list[Reading]:
        return list(self._readings)

    @property
    def reset_day(self) -> int:
        return self._reset_day

    def get_meter(self, meter_id: Union[UUID, str, None]) -> Optional[Meter]:
        wanted = _coerce_id(meter_id)
        if wanted is None:
            return None
        return next((m for m in self._meters if m.id == wanted), None)

    def find_by_number(self, number: str) -> Optional[Meter]:
        number = (number or "").strip()
        return next((m for m in self._meters if m.number == number), None)

    def readings_for(self, meter_id: Union[UUID, str]) -> list[Reading]:
        wanted = _coerce_id(meter_id)
        return [r for r in self._readings if r.meter_id == wanted]

    def recent_readings(self, limit: int = 10) -> list[Reading]:
        """Newest readings first, across all meters."""
        ordered = sorted(
            self._readings,
            key=lambda r: (r.date, r.id),
            reverse=True,
        )
        return ordered[:limit]

    def current_period_start(self, now: Optional[datetime] = None) -> datetime:
        return current_period_start(to_local_naive(now or self._clock()), self._reset_day)

    def summaries(self, now: Optional[datetime] = None) -> list[MeterSummary]:
        """Latest reading and current-period consumption for every meter."""
        return summarize(self._meters, self._readings, self.current_period_start(now))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_meter(
        self,
        name: str,
        number: str,
        last_month_reading: Any = 0.0,
    ) -> Meter:
        """
        Register a new meter.

        A positive baseline also seeds an initial reading at the start of the
        current period, so the first real capture already yields a delta.

        Raises:
            InvalidInputError: Empty name/number or non-numeric baseline
            DuplicateMeterNumberError: Number already in use
        """
        result = self._validator.validate_meter(
            name, number, last_month_reading, self._meters,
        )
        _raise_for(result, number)

        meter = Meter(
            name=name.strip(),
            number=number.strip(),
            last_month_reading=float(last_month_reading),
        )
        meters = self._meters + [meter]
        readings = self._readings

        if meter.last_month_reading > 0:
            initial = Reading(
                meter_id=meter.id,
                reading=meter.last_month_reading,
                date=self.current_period_start(),
                is_initial_reading=True,
            )
            readings = readings + [initial]

        self._persist(
            meters=meters,
            readings=readings if readings is not self._readings else None,
        )
        self._meters, self._readings = meters, readings

        logger.info("meter_added", meter_id=str(meter.id), number=meter.number)
        return meter

    def update_meter(
        self,
        meter_id: Union[UUID, str],
        name: str,
        number: str,
        last_month_reading: Any,
    ) -> Meter:
        """
        Edit a meter's name, number and baseline.

        Existing readings are left alone.

        Raises:
            NotFoundError: No meter with this id
            InvalidInputError / DuplicateMeterNumberError: as for add_meter
        """
        current = self.get_meter(meter_id)
        if current is None:
            raise NotFoundError(f"Meter not found: {meter_id}")

        result = self._validator.validate_meter(
            name, number, last_month_reading, self._meters, exclude_id=current.id,
        )
        _raise_for(result, number)

        updated = Meter(
            id=current.id,
            name=name.strip(),
            number=number.strip(),
            last_month_reading=float(last_month_reading),
        )
        meters = [updated if m.id == current.id else m for m in self._meters]

        self._persist(meters=meters)
        self._meters = meters

        logger.info("meter_updated", meter_id=str(updated.id), number=updated.number)
        return updated

    def delete_meter(self, meter_id: Union[UUID, str]) -> bool:
        """
        Delete a meter and every reading that belongs to it.

        Deleting an unknown id is a no-op.

        Returns:
            True if a meter was removed
        """
        meter = self.get_meter(meter_id)
        if meter is None:
            return False

        meters = [m for m in self._meters if m.id != meter.id]
        readings = [r for r in self._readings if r.meter_id != meter.id]

        self._persist(meters=meters, readings=readings)
        removed = len(self._readings) - len(readings)
        self._meters, self._readings = meters, readings

        logger.info("meter_deleted", meter_id=str(meter.id), removed_readings=removed)
        return True

    def add_reading(
        self,
        meter_id: Union[UUID, str],
        value: Any,
        image: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> Reading:
        """
        Append a reading to the log.

        Raises:
            InvalidInputError: Unknown meter or non-finite value
        """
        meter = self.get_meter(meter_id)
        if meter is None:
            raise InvalidInputError(f"No meter with id {meter_id}")

        result = self._validator.validate_reading_value(value)
        _raise_for(result)

        reading = Reading(
            meter_id=meter.id,
            reading=float(value),
            date=date or self._clock(),
            image=image,
        )
        readings = self._readings + [reading]

        self._persist(readings=readings)
        self._readings = readings

        logger.info("reading_added", meter_id=str(meter.id), reading_id=reading.id)
        return reading

    def merge_import(self, result: ImportResult) -> None:
        """
        Append everything an import produced.

        Import never edits or deletes existing records. If a new meter's
        number has meanwhile been taken, nothing is merged.

        Raises:
            DuplicateMeterNumberError: A new meter collides with a live one
        """
        taken = {m.number for m in self._meters}
        for meter in result.new_meters:
            if meter.number in taken:
                raise DuplicateMeterNumberError(meter.number)
            taken.add(meter.number)

        live_ids = {m.id for m in self._meters} | {m.id for m in result.new_meters}
        orphans = [r for r in result.new_readings if r.meter_id not in live_ids]
        if orphans:
            raise InvalidInputError(
                f"{len(orphans)} imported readings reference unknown meters"
            )

        meters = self._meters + list(result.new_meters)
        readings = self._readings + list(result.new_readings)

        self._persist(
            meters=meters if result.new_meters else None,
            readings=readings,
        )
        self._meters, self._readings = meters, readings

        logger.info(
            "import_merged",
            new_meters=len(result.new_meters),
            new_readings=len(result.new_readings),
        )

    def set_reset_day(self, day: int) -> int:
        """Store a new reset day (clamped to 1..28) and return it."""
        reset_day = clamp_reset_day(day)
        self._persist(reset_day=reset_day)
        self._reset_day = reset_day
        return reset_day


def _coerce_id(meter_id: Union[UUID, str, None]) -> Optional[UUID]:
    if meter_id is None or isinstance(meter_id, UUID):
        return meter_id
    try:
        return UUID(str(meter_id))
    except ValueError:
        return None


def _raise_for(result: ValidationResult, number: Optional[str] = None) -> None:
    """Turn error-level issues into the matching exception."""
    if not result.has_errors:
        return

    errors = [i for i in result.issues if i.severity == "error"]
    plain = [i for i in errors if i.issue_type != "duplicate"]
    if plain:
        raise InvalidInputError(plain[0].message, result)
    raise DuplicateMeterNumberError((number or "").strip())
