# Overview: Service-layer operations for document numbering (sale folios).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidInputError
from ..extensions import db
from ..models import DocumentSequence


DOCUMENT_TYPE_SALE = "SALE"


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for a document type.

    Must run inside the caller's write transaction: the increment is a single
    UPDATE on the sequence row, so concurrent writers serialize on that row
    and a rolled-back sale gives its number back.
    """
    if not document_type:
        raise InvalidInputError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(document_type) - 1
    else:
        # First document of this type. A concurrent first writer may win the
        # insert; fall back to the increment inside a savepoint.
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"


def _current_number(document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_sale_folio(prefix: str = "V") -> str:
    return next_document_number(document_type=DOCUMENT_TYPE_SALE, prefix=prefix)
