import asyncio
import logging
import math
import secrets
import string
import time
from typing import Any, Mapping, Optional, Union

import pydantic
from pydantic import TypeAdapter

from ..errors import NotFoundError, PersistenceError, ValidationError
from ..models import Balance, Expense, ExpenseCreate, Settlement, Trip, TripSummary
from .settlement import calculate_balances, calculate_settlements
from .storage import KeyValueStore
from .summary import summarize_trip

logger = logging.getLogger("splitsmart.trips")

STORAGE_KEY = "@splitsmart_trips"

_trip_list = TypeAdapter(list[Trip])
_ID_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id() -> str:
    """Timestamp-prefixed id with a random base-36 suffix."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{now_ms()}_{suffix}"


def validate_trip_fields(name: str, members: list[str]) -> tuple[str, list[str]]:
    """
    Normalize and validate a trip name and member roster.

    Names are trimmed and blank member entries are ignored.

    Returns:
        Tuple of (trimmed name, trimmed members)

    Raises:
        ValidationError: If the name is blank, fewer than two members remain,
            member names repeat, or any of them is not a string
    """
    if name is not None and not isinstance(name, str):
        raise ValidationError("Trip name must be a string")
    if not isinstance(members, (list, tuple)) or not all(isinstance(m, str) for m in members):
        raise ValidationError("Members must be a list of names")

    trimmed_name = (name or "").strip()
    if not trimmed_name:
        raise ValidationError("Please enter a trip name")

    valid_members = [m.strip() for m in members if m.strip()]
    if len(valid_members) < 2:
        raise ValidationError("Please add at least 2 members")

    if len(set(valid_members)) != len(valid_members):
        raise ValidationError("Member names must be unique")

    return trimmed_name, valid_members


def validate_expense(trip: Trip, expense: Union[ExpenseCreate, Mapping[str, Any]]) -> ExpenseCreate:
    """
    Check an expense payload against a trip's current members.

    Raises:
        ValidationError: On a blank title, a non-positive or non-finite amount,
            an unknown payer, or an empty, repeated or unknown split member
    """
    if not isinstance(expense, ExpenseCreate):
        try:
            expense = ExpenseCreate.model_validate(expense)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid expense: {e}") from e

    title = expense.title.strip()
    if not title:
        raise ValidationError("Please enter an expense title")

    if not math.isfinite(expense.amount) or expense.amount <= 0:
        raise ValidationError("Please enter a valid amount")

    if not expense.payer:
        raise ValidationError("Please select who paid")
    if expense.payer not in trip.members:
        raise ValidationError(f"Payer {expense.payer!r} is not a member of this trip")

    if not expense.split_among:
        raise ValidationError("Please select at least one member to split with")
    if len(set(expense.split_among)) != len(expense.split_among):
        raise ValidationError("Split members must be distinct")
    unknown = [m for m in expense.split_among if m not in trip.members]
    if unknown:
        raise ValidationError(f"Not members of this trip: {', '.join(unknown)}")

    return expense.model_copy(update={"title": title})


class TripStore:
    """
    In-memory trip collection persisted as one value under one storage key.

    Every mutation validates first, then replaces the in-memory collection,
    then rewrites the whole serialized collection. Mutations are serialized
    by a lock held across the update and the write. Trips are replaced, never
    mutated in place, so objects handed out by reads are stable snapshots.
    """

    def __init__(self, storage: KeyValueStore, storage_key: str = STORAGE_KEY):
        self.storage = storage
        self.storage_key = storage_key
        self._trips: list[Trip] = []
        self._is_loading = True
        self._lock = asyncio.Lock()

    @property
    def is_loading(self) -> bool:
        """True until the initial load from storage has finished."""
        return self._is_loading

    async def load(self) -> None:
        """
        Hydrate the collection from storage.

        A missing key yields an empty collection. Read failures and
        unparseable payloads are logged and also yield an empty collection.
        """
        async with self._lock:
            try:
                stored = await self.storage.get_item(self.storage_key)
                self._trips = _trip_list.validate_json(stored) if stored else []
            except (PersistenceError, pydantic.ValidationError):
                logger.exception(
                    "Error loading trips",
                    extra={"extra_data": {"storage_key": self.storage_key}},
                )
                self._trips = []
            finally:
                self._is_loading = False

        logger.info("Loaded trips", extra={"extra_data": {"count": len(self._trips)}})

    async def _save(self) -> None:
        payload = _trip_list.dump_json(self._trips, by_alias=True).decode("utf-8")
        try:
            await self.storage.set_item(self.storage_key, payload)
        except PersistenceError:
            logger.exception(
                "Error saving trips; in-memory state is not durable",
                extra={"extra_data": {"storage_key": self.storage_key}},
            )
            raise

    def _index_of(self, trip_id: str) -> int:
        for i, trip in enumerate(self._trips):
            if trip.id == trip_id:
                return i
        raise NotFoundError(trip_id)

    def _require_trip(self, trip_id: str) -> Trip:
        return self._trips[self._index_of(trip_id)]

    def list_trips(self) -> list[Trip]:
        """All trips, in creation order."""
        return list(self._trips)

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        """Return the trip with this id, or None if there is none."""
        for trip in self._trips:
            if trip.id == trip_id:
                return trip
        return None

    async def create_trip(self, name: str, members: list[str]) -> str:
        """
        Create a trip with no expenses.

        Returns:
            The new trip's id

        Raises:
            ValidationError: If name or members are invalid
            PersistenceError: If the collection could not be written
        """
        trimmed_name, valid_members = validate_trip_fields(name, members)

        async with self._lock:
            trip = Trip(
                id=generate_id(),
                name=trimmed_name,
                members=valid_members,
                expenses=[],
                created_at=now_ms(),
            )
            self._trips = [*self._trips, trip]
            logger.info("Created trip", extra={"extra_data": {"trip_id": trip.id}})
            await self._save()

        return trip.id

    async def update_trip(self, trip_id: str, name: str, members: list[str]) -> None:
        """
        Replace a trip's name and members.

        Any expense whose payer or split members are no longer all members is
        removed along with the member.

        Raises:
            ValidationError: If name or members are invalid
            NotFoundError: If no trip has this id
            PersistenceError: If the collection could not be written
        """
        trimmed_name, valid_members = validate_trip_fields(name, members)

        async with self._lock:
            index = self._index_of(trip_id)
            trip = self._trips[index]

            roster = set(valid_members)
            valid_expenses = [
                expense for expense in trip.expenses
                if expense.payer in roster and all(m in roster for m in expense.split_among)
            ]
            pruned = len(trip.expenses) - len(valid_expenses)

            updated = trip.model_copy(update={
                "name": trimmed_name,
                "members": valid_members,
                "expenses": valid_expenses,
            })
            self._trips = [*self._trips[:index], updated, *self._trips[index + 1:]]
            logger.info(
                "Updated trip",
                extra={"extra_data": {"trip_id": trip_id, "pruned_expenses": pruned}},
            )
            await self._save()

    async def delete_trip(self, trip_id: str) -> None:
        """
        Remove a trip and its expenses.

        Raises:
            NotFoundError: If no trip has this id
            PersistenceError: If the collection could not be written
        """
        async with self._lock:
            index = self._index_of(trip_id)
            self._trips = [*self._trips[:index], *self._trips[index + 1:]]
            logger.info("Deleted trip", extra={"extra_data": {"trip_id": trip_id}})
            await self._save()

    async def add_expense(self, trip_id: str, expense: Union[ExpenseCreate, Mapping[str, Any]]) -> str:
        """
        Append an expense to a trip.

        Args:
            trip_id: The trip ID
            expense: ExpenseCreate, or a mapping with title, amount, payer
                and splitAmong

        Returns:
            The new expense's id

        Raises:
            ValidationError: If the expense is invalid for this trip
            NotFoundError: If no trip has this id
            PersistenceError: If the collection could not be written
        """
        async with self._lock:
            index = self._index_of(trip_id)
            trip = self._trips[index]
            data = validate_expense(trip, expense)

            new_expense = Expense(
                id=generate_id(),
                title=data.title,
                payer=data.payer,
                amount=data.amount,
                split_among=list(data.split_among),
                timestamp=now_ms(),
            )
            updated = trip.model_copy(update={"expenses": [*trip.expenses, new_expense]})
            self._trips = [*self._trips[:index], updated, *self._trips[index + 1:]]
            logger.info(
                "Added expense",
                extra={"extra_data": {"trip_id": trip_id, "expense_id": new_expense.id}},
            )
            await self._save()

        return new_expense.id

    def get_trip_balances(self, trip_id: str) -> list[Balance]:
        """
        Get balances for all members of a trip.

        Raises:
            NotFoundError: If no trip has this id
        """
        trip = self._require_trip(trip_id)
        return calculate_balances(trip.members, trip.expenses)

    def get_trip_settlements(self, trip_id: str) -> list[Settlement]:
        """
        Get the payments that settle a trip.

        Raises:
            NotFoundError: If no trip has this id
        """
        return calculate_settlements(self.get_trip_balances(trip_id))

    def get_trip_summary(self, trip_id: str) -> TripSummary:
        """
        Get totals and the per-payer spending breakdown for a trip.

        Raises:
            NotFoundError: If no trip has this id
        """
        return summarize_trip(self._require_trip(trip_id))
