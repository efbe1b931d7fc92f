# Overview: Sequential, prefix-scoped transaction codes (GRN-1, GRN-2, ...).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CodeSequence, CodeAllocation


class CodeAllocationError(Exception):
    """Raised when code allocation input is invalid."""
    pass


def extract_prefix(description: str) -> str:
    """'GRN' -> 'GRN', 'GRN-Receipt' -> 'GRN'."""
    return description.split("-")[0].strip()


def _bump(company_id: str, shop_id: str, prefix: str) -> int | None:
    stmt = (
        update(CodeSequence)
        .where(
            CodeSequence.company_id == company_id,
            CodeSequence.shop_id == shop_id,
            CodeSequence.prefix == prefix,
        )
        .values(last_number=CodeSequence.last_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    return (
        db.session.query(CodeSequence.last_number)
        .filter_by(company_id=company_id, shop_id=shop_id, prefix=prefix)
        .scalar()
    )


def allocate(company_id: str, shop_id: str, created_by: str, description: str) -> str:
    """
    Allocate the next code for (company_id, shop_id, prefix of description).

    The counter is incremented with a single UPDATE, so two allocators in the
    same scope can never receive the same number. The first allocation in a
    scope inserts the counter row inside a savepoint; losing that insert race
    falls back to the UPDATE path without disturbing the caller's transaction.

    Runs inside the caller's transaction: if the caller rolls back, the
    number is released together with everything else.
    """
    if not company_id or not shop_id:
        raise CodeAllocationError("company_id and shop_id are required")
    if not description:
        raise CodeAllocationError("description is required")

    prefix = extract_prefix(description)
    if not prefix:
        raise CodeAllocationError(f"cannot derive a prefix from {description!r}")

    number = _bump(company_id, shop_id, prefix)
    if number is None:
        try:
            with db.session.begin_nested():
                db.session.add(CodeSequence(
                    company_id=company_id, shop_id=shop_id, prefix=prefix, last_number=1,
                ))
            number = 1
        except IntegrityError:
            number = _bump(company_id, shop_id, prefix)
            if number is None:
                raise

    code = f"{prefix}-{number}"
    db.session.add(CodeAllocation(
        company_id=company_id,
        shop_id=shop_id,
        prefix=prefix,
        sequence_number=number,
        code_number=code,
        description=description,
        created_by=created_by,
    ))
    db.session.flush()
    return code


def last_allocated(company_id: str, shop_id: str, prefix: str) -> CodeAllocation | None:
    """Most recently issued code in a scope (by sequence number)."""
    return (
        db.session.query(CodeAllocation)
        .filter_by(company_id=company_id, shop_id=shop_id, prefix=prefix)
        .order_by(CodeAllocation.sequence_number.desc())
        .first()
    )
