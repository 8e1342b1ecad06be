"""
Durable per-school receipt counters behind a single atomic increment.

``reserve_next`` is the only way a sequence value is issued. The SQL store
does it in one ``UPDATE ... RETURNING`` statement, so two processes hitting
the same school can never read the same counter value; the in-memory store
serialises callers with an ``asyncio.Lock``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.documents.models import ReceiptDocumentType, ReceiptNumberFormat
from src.core.exceptions import ReservationFailedError
from src.core.school_settings.models import School, counter_column_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservedSequence:
    """A sequence value that has been durably issued."""

    school_id: Any
    document_type: ReceiptDocumentType
    sequence: int
    year: int
    prefix: str
    format: str


@dataclass
class SequenceCounters:
    """Counter state of one (school, document type) sequence."""

    prefix: str = ""
    format: str = ReceiptNumberFormat.AUTO.value
    counter: int = 0
    year: int | None = None


@dataclass
class SchoolCounters:
    """Both receipt sequences of a school."""

    fee: SequenceCounters
    installment: SequenceCounters

    def for_type(self, document_type: ReceiptDocumentType | str) -> SequenceCounters:
        if ReceiptDocumentType(document_type) == ReceiptDocumentType.INSTALLMENT:
            return self.installment
        return self.fee


def next_sequence(counter: int | None, stored_year: int | None, year: int) -> tuple[int, int]:
    """
    (sequence, year) the next reservation issues.

    Resets to 1 when the stored year is older than ``year``. A missing stored
    year continues from the stored counter (lets an admin seed a start value).
    A stored year newer than ``year`` (clock behind) keeps counting in the
    stored year so no (year, sequence) pair is ever issued twice.
    """
    if stored_year is not None and stored_year < year:
        return 1, year
    if stored_year is not None and stored_year > year:
        return (counter or 0) + 1, stored_year
    return (counter or 0) + 1, year


class CounterStore(ABC):
    """Contract every counter backend implements."""

    @abstractmethod
    async def get_school_counters(self, school_id: Any) -> SchoolCounters:
        """Current counters of both sequences (read only)."""

    @abstractmethod
    async def reserve_next(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
        year: int,
    ) -> ReservedSequence:
        """Atomically issue and persist the next sequence value."""

    async def peek_next(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
        year: int,
    ) -> tuple[int, int]:
        """(sequence, year) the next reservation would issue, without reserving it."""
        counters = (await self.get_school_counters(school_id)).for_type(document_type)
        return next_sequence(counters.counter, counters.year, year)


class SqlCounterStore(CounterStore):
    """
    Counters stored on the ``schools`` row, incremented with UPDATE ... RETURNING.

    ``reserve_next`` locks the school row until the transaction ends. Callers
    that also write fee or installment rows lock in the order fee row, its
    installment rows, then the school row (payments, receipt views and the
    legacy backfill all do), so two such transactions never wait on each other.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _columns(document_type: ReceiptDocumentType | str):
        column_prefix = counter_column_prefix(document_type)
        return (
            getattr(School, f"{column_prefix}_prefix"),
            getattr(School, f"{column_prefix}_format"),
            getattr(School, f"{column_prefix}_counter"),
            getattr(School, f"{column_prefix}_year"),
        )

    async def get_school_counters(self, school_id: Any) -> SchoolCounters:
        fee_cols = self._columns(ReceiptDocumentType.FEE)
        inst_cols = self._columns(ReceiptDocumentType.INSTALLMENT)
        try:
            result = await self.session.execute(
                select(*fee_cols, *inst_cols).where(School.id == school_id)
            )
        except SQLAlchemyError as exc:
            raise ReservationFailedError(school_id, "fee", f"store error: {exc}") from exc
        row = result.one_or_none()
        if row is None:
            raise ReservationFailedError(school_id, "fee", "school not found")
        return SchoolCounters(
            fee=SequenceCounters(
                prefix=row[0] or "",
                format=row[1] or ReceiptNumberFormat.AUTO.value,
                counter=row[2] or 0,
                year=row[3],
            ),
            installment=SequenceCounters(
                prefix=row[4] or "",
                format=row[5] or ReceiptNumberFormat.AUTO.value,
                counter=row[6] or 0,
                year=row[7],
            ),
        )

    async def reserve_next(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
        year: int,
    ) -> ReservedSequence:
        document_type = ReceiptDocumentType(document_type)
        prefix_col, format_col, counter_col, year_col = self._columns(document_type)

        # SET expressions see the pre-update row, so the reset check and the
        # increment happen against the same values in one statement.
        stmt = (
            update(School)
            .where(School.id == school_id)
            .values(
                {
                    counter_col: case((year_col < year, 1), else_=counter_col + 1),
                    year_col: case(
                        (or_(year_col.is_(None), year_col < year), year),
                        else_=year_col,
                    ),
                }
            )
            .returning(counter_col, year_col, prefix_col, format_col)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            row = result.one_or_none()
        except SQLAlchemyError as exc:
            logger.error(
                "Counter increment failed for school=%s type=%s: %s",
                school_id,
                document_type.value,
                exc,
            )
            raise ReservationFailedError(
                school_id, document_type.value, f"store error: {exc}"
            ) from exc

        if row is None:
            raise ReservationFailedError(school_id, document_type.value, "school not found")

        sequence, stamped_year, prefix, number_format = row
        logger.info(
            "Reserved %s receipt sequence %s/%s for school %s",
            document_type.value,
            sequence,
            stamped_year,
            school_id,
        )
        return ReservedSequence(
            school_id=school_id,
            document_type=document_type,
            sequence=int(sequence),
            year=int(stamped_year),
            prefix=prefix or "",
            format=number_format or ReceiptNumberFormat.AUTO.value,
        )


class InMemoryCounterStore(CounterStore):
    """
    Counters kept in process memory, one lock guarding the whole map.

    Used by offline/local mode and tests; it gives the same guarantees as the
    SQL store within a single process only.
    """

    def __init__(self, schools: dict[Any, SchoolCounters] | None = None):
        self._schools: dict[Any, SchoolCounters] = dict(schools or {})
        self._lock = asyncio.Lock()

    def register_school(
        self,
        school_id: Any,
        fee: SequenceCounters | None = None,
        installment: SequenceCounters | None = None,
    ) -> SchoolCounters:
        counters = SchoolCounters(
            fee=fee or SequenceCounters(),
            installment=installment or SequenceCounters(),
        )
        self._schools[school_id] = counters
        return counters

    async def get_school_counters(self, school_id: Any) -> SchoolCounters:
        counters = self._schools.get(school_id)
        if counters is None:
            raise ReservationFailedError(school_id, "fee", "school not found")
        return counters

    async def reserve_next(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
        year: int,
    ) -> ReservedSequence:
        document_type = ReceiptDocumentType(document_type)
        async with self._lock:
            counters = self._schools.get(school_id)
            if counters is None:
                raise ReservationFailedError(school_id, document_type.value, "school not found")
            sequence_counters = counters.for_type(document_type)
            sequence, stamped_year = next_sequence(
                sequence_counters.counter, sequence_counters.year, year
            )
            sequence_counters.counter = sequence
            sequence_counters.year = stamped_year
            return ReservedSequence(
                school_id=school_id,
                document_type=document_type,
                sequence=sequence,
                year=stamped_year,
                prefix=sequence_counters.prefix,
                format=sequence_counters.format,
            )
