"""Persisting receipt numbers onto fee and installment rows."""

import re
from typing import Any

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.documents.counter_store import SqlCounterStore
from src.core.documents.models import ReceiptDocumentType
from src.core.documents.number_generator import ReceiptAssignmentStore, ReceiptNumberGenerator
from src.core.exceptions import ReservationFailedError
from src.modules.fees.models import Fee, Installment


# Receipt numbers written into payment_note before the receipt_number column existed
LEGACY_RECEIPT_TAG = re.compile(r"\[RN:([^\]]+)\]")


def extract_legacy_receipt_number(note: str | None) -> str | None:
    """Receipt number from a legacy ``[RN:...]`` tag in a payment note, if any."""
    if not note:
        return None
    match = LEGACY_RECEIPT_TAG.search(note)
    if not match:
        return None
    return match.group(1).strip() or None


def strip_legacy_receipt_tag(note: str | None) -> str | None:
    """
    Payment note without its ``[RN:...]`` tags; None when nothing else is left.

    Examples:
        >>> strip_legacy_receipt_tag("Paid by father [RN:REC12]")
        'Paid by father'
    """
    if note is None:
        return None
    cleaned = " ".join(LEGACY_RECEIPT_TAG.sub(" ", note).split())
    return cleaned or None


def _model_for(record_type: ReceiptDocumentType | str):
    if ReceiptDocumentType(record_type) == ReceiptDocumentType.INSTALLMENT:
        return Installment
    return Fee


class SqlReceiptAssignmentStore(ReceiptAssignmentStore):
    """
    Receipt numbers stored in the ``receipt_number`` column of fees/installments.

    The column check runs against the live schema once per table and session,
    so a database that missed the migration fails fast instead of hiding the
    number somewhere else.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._column_cache: dict[str, bool] = {}

    async def supports_receipt_number_column(self, record_type: ReceiptDocumentType) -> bool:
        table_name = _model_for(record_type).__tablename__
        if table_name not in self._column_cache:

            def _has_column(sync_session) -> bool:
                inspector = inspect(sync_session.connection())
                return any(
                    column["name"] == "receipt_number"
                    for column in inspector.get_columns(table_name)
                )

            try:
                self._column_cache[table_name] = await self.session.run_sync(_has_column)
            except SQLAlchemyError as exc:
                raise ReservationFailedError(
                    None, ReceiptDocumentType(record_type).value, f"store error: {exc}"
                ) from exc
        return self._column_cache[table_name]

    async def conditional_set_receipt_number(
        self,
        record_id: Any,
        record_type: ReceiptDocumentType,
        number: str,
        year: int | None = None,
    ) -> bool:
        model = _model_for(record_type)
        result = await self.session.execute(
            update(model)
            .where(model.id == record_id, model.receipt_number.is_(None))
            .values(receipt_number=number, receipt_year=year)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_receipt_number(
        self,
        record_id: Any,
        record_type: ReceiptDocumentType,
    ) -> str | None:
        model = _model_for(record_type)
        result = await self.session.execute(
            select(model.receipt_number).where(model.id == record_id)
        )
        return result.scalar_one_or_none()


def receipt_number_generator(session: AsyncSession) -> ReceiptNumberGenerator:
    """Generator wired to the SQL counter and assignment stores of a session."""
    return ReceiptNumberGenerator(
        counter_store=SqlCounterStore(session),
        assignment_store=SqlReceiptAssignmentStore(session),
    )
