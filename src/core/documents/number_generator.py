import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Protocol

from src.core.documents.counter_store import CounterStore, ReservedSequence
from src.core.documents.models import ReceiptDocumentType, ReceiptNumberFormat
from src.core.exceptions import ConcurrentAssignmentLostError, ReservationFailedError

logger = logging.getLogger(__name__)

_PREFIXED_FORMATS = (ReceiptNumberFormat.AUTO, ReceiptNumberFormat.CUSTOM)
_PLAIN_FORMATS = (ReceiptNumberFormat.SEQUENTIAL, ReceiptNumberFormat.STUDENT_SEQUENTIAL)


@dataclass(frozen=True)
class ReceiptNumber:
    """
    Human-facing receipt number.

    ``sequence``/``year`` are None when an existing number could not be parsed
    back (e.g. numbers issued before the school changed its format).
    """

    full: str
    prefix: str = ""
    year: int | None = None
    sequence: int | None = None
    format: str = ReceiptNumberFormat.AUTO.value

    def __str__(self) -> str:
        return self.full


def _with_year(receipt_number: ReceiptNumber, year: int | None) -> ReceiptNumber:
    if receipt_number.year is None and year is not None:
        return replace(receipt_number, year=year)
    return receipt_number


def _number_format(value: str | None) -> ReceiptNumberFormat:
    try:
        return ReceiptNumberFormat(value or ReceiptNumberFormat.AUTO.value)
    except ValueError:
        return ReceiptNumberFormat.AUTO


def format_receipt_number(
    sequence: int,
    year: int,
    prefix: str = "",
    number_format: str = ReceiptNumberFormat.AUTO.value,
) -> str:
    """
    Render a sequence value per school format.

    Examples:
        >>> format_receipt_number(228, 2025, "REC")
        'REC228'
        >>> format_receipt_number(228, 2025, number_format="year")
        '228/2025'
        >>> format_receipt_number(228, 2025, number_format="short-year")
        '228/25'
    """
    fmt = _number_format(number_format)
    if fmt in _PLAIN_FORMATS:
        return str(sequence)
    if fmt == ReceiptNumberFormat.YEAR:
        return f"{sequence}/{year}"
    if fmt == ReceiptNumberFormat.SHORT_YEAR:
        return f"{sequence}/{str(year)[-2:]}"
    return f"{prefix or ''}{sequence}"


def parse_receipt_number(
    value: str,
    prefix: str = "",
    number_format: str = ReceiptNumberFormat.AUTO.value,
) -> ReceiptNumber:
    """Parse a persisted receipt number. The ``full`` text is always kept unchanged."""
    fmt = _number_format(number_format)
    text = value.strip()
    sequence: int | None = None
    year: int | None = None

    if fmt in (ReceiptNumberFormat.YEAR, ReceiptNumberFormat.SHORT_YEAR):
        match = re.fullmatch(r"(\d+)/(\d{2}|\d{4})", text)
        if match:
            sequence = int(match.group(1))
            year_text = match.group(2)
            year = int(year_text) if len(year_text) == 4 else 2000 + int(year_text)
    elif fmt in _PLAIN_FORMATS:
        if text.isdigit():
            sequence = int(text)
    else:
        rest = text[len(prefix):] if prefix and text.startswith(prefix) else text
        if rest.isdigit():
            sequence = int(rest)

    return ReceiptNumber(
        full=value,
        prefix=prefix if fmt in _PREFIXED_FORMATS else "",
        year=year,
        sequence=sequence,
        format=fmt.value,
    )


def validate_receipt_number(
    value: str | None,
    number_format: str = ReceiptNumberFormat.AUTO.value,
    prefix: str = "",
) -> bool:
    """Check that a receipt number follows the configured pattern."""
    if not value:
        return False
    fmt = _number_format(number_format)
    if fmt in _PLAIN_FORMATS:
        return re.fullmatch(r"\d+", value) is not None
    if fmt == ReceiptNumberFormat.YEAR:
        return re.fullmatch(r"\d+/\d{4}", value) is not None
    if fmt == ReceiptNumberFormat.SHORT_YEAR:
        return re.fullmatch(r"\d+/\d{2}", value) is not None
    if fmt == ReceiptNumberFormat.CUSTOM:
        return value.startswith(prefix) if prefix else True
    return len(value) > 0


class ReceiptNumberedRecord(Protocol):
    """A Fee or Installment row as seen by the reserver."""

    id: Any
    receipt_number: str | None


class ReceiptAssignmentStore(ABC):
    """Persistence of receipt numbers onto fee/installment records."""

    @abstractmethod
    async def supports_receipt_number_column(self, record_type: ReceiptDocumentType) -> bool:
        """True when the record table has a first-class receipt_number column."""

    @abstractmethod
    async def conditional_set_receipt_number(
        self,
        record_id: Any,
        record_type: ReceiptDocumentType,
        number: str,
        year: int | None = None,
    ) -> bool:
        """Set receipt_number and its year only if currently NULL. True if this writer won."""

    @abstractmethod
    async def get_receipt_number(
        self,
        record_id: Any,
        record_type: ReceiptDocumentType,
    ) -> str | None:
        """Re-read the persisted receipt number of a record."""


class ReceiptNumberGenerator:
    """
    Reserves receipt numbers per school and document type.

    Every reservation calls the counter store's atomic ``reserve_next`` exactly
    once. Numbers that already exist on a record are returned unchanged and
    never touch the counter, so viewing a receipt does not consume a number.
    """

    def __init__(
        self,
        counter_store: CounterStore,
        assignment_store: ReceiptAssignmentStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.counter_store = counter_store
        self.assignment_store = assignment_store
        self.clock = clock

    def current_year(self) -> int:
        return self.clock().year

    @staticmethod
    def _to_receipt_number(reserved: ReservedSequence) -> ReceiptNumber:
        return ReceiptNumber(
            full=format_receipt_number(
                reserved.sequence, reserved.year, reserved.prefix, reserved.format
            ),
            prefix=reserved.prefix if _number_format(reserved.format) in _PREFIXED_FORMATS else "",
            year=reserved.year,
            sequence=reserved.sequence,
            format=_number_format(reserved.format).value,
        )

    async def reserve_receipt_number(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
    ) -> ReceiptNumber:
        """Reserve and format the next receipt number."""
        reserved = await self.counter_store.reserve_next(
            school_id, ReceiptDocumentType(document_type), self.current_year()
        )
        return self._to_receipt_number(reserved)

    async def reserve_receipt_numbers(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
        count: int,
    ) -> list[ReceiptNumber]:
        """Reserve ``count`` numbers, one atomic increment each (bulk import)."""
        if count < 0:
            raise ValueError("count must not be negative")
        return [
            await self.reserve_receipt_number(school_id, document_type) for _ in range(count)
        ]

    async def preview_receipt_number(
        self,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
    ) -> ReceiptNumber:
        """Next number as it would be issued now. Does not reserve it."""
        document_type = ReceiptDocumentType(document_type)
        counters = (await self.counter_store.get_school_counters(school_id)).for_type(
            document_type
        )
        sequence, year = await self.counter_store.peek_next(
            school_id, document_type, self.current_year()
        )
        return self._to_receipt_number(
            ReservedSequence(
                school_id=school_id,
                document_type=document_type,
                sequence=sequence,
                year=year,
                prefix=counters.prefix,
                format=counters.format,
            )
        )

    async def get_or_reserve(
        self,
        existing_receipt_number: str | None,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
    ) -> ReceiptNumber:
        """Return the existing number parsed and unchanged, or reserve a new one."""
        if existing_receipt_number and existing_receipt_number.strip():
            counters = (await self.counter_store.get_school_counters(school_id)).for_type(
                document_type
            )
            return parse_receipt_number(
                existing_receipt_number, counters.prefix, counters.format
            )
        return await self.reserve_receipt_number(school_id, document_type)

    async def assign_receipt_number(
        self,
        record: ReceiptNumberedRecord,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
    ) -> ReceiptNumber:
        """
        Reserve a number and write it onto an un-numbered record.

        Raises ConcurrentAssignmentLostError if another writer numbered the
        record first; the number reserved here is then left as a gap.
        """
        document_type = ReceiptDocumentType(document_type)
        store = self.assignment_store
        if store is None or not await store.supports_receipt_number_column(document_type):
            raise ReservationFailedError(
                school_id,
                document_type.value,
                "record store has no receipt_number column",
            )

        receipt_number = await self.reserve_receipt_number(school_id, document_type)
        won = await store.conditional_set_receipt_number(
            record.id, document_type, receipt_number.full, receipt_number.year
        )
        if not won:
            raise ConcurrentAssignmentLostError(
                document_type.value, record.id, receipt_number.full
            )
        record.receipt_number = receipt_number.full
        if hasattr(record, "receipt_year"):
            record.receipt_year = receipt_number.year
        return receipt_number

    async def get_or_reserve_receipt_number(
        self,
        record: ReceiptNumberedRecord,
        school_id: Any,
        document_type: ReceiptDocumentType | str,
    ) -> ReceiptNumber:
        """
        Receipt number of a fee/installment, minting it on first use.

        A lost race is resolved by returning the number the winner persisted.
        """
        if record.receipt_number:
            existing = await self.get_or_reserve(record.receipt_number, school_id, document_type)
            return _with_year(existing, getattr(record, "receipt_year", None))

        document_type = ReceiptDocumentType(document_type)
        try:
            return await self.assign_receipt_number(record, school_id, document_type)
        except ConcurrentAssignmentLostError as exc:
            logger.info("Receipt assignment race lost: %s", exc.message)
            winner = await self.assignment_store.get_receipt_number(record.id, document_type)
            if not winner:
                raise ReservationFailedError(
                    school_id,
                    document_type.value,
                    "record lost its receipt number after a concurrent assignment",
                ) from exc
            record.receipt_number = winner
            return await self.get_or_reserve(winner, school_id, document_type)


async def get_receipt_number(
    counter_store: CounterStore,
    school_id: Any,
    document_type: ReceiptDocumentType | str,
) -> ReceiptNumber:
    """Convenience function to reserve a receipt number."""
    generator = ReceiptNumberGenerator(counter_store)
    return await generator.reserve_receipt_number(school_id, document_type)
