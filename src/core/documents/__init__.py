from src.core.documents.models import ReceiptDocumentType, ReceiptNumberFormat

__all__ = ["ReceiptDocumentType", "ReceiptNumberFormat"]
