# app/crud/records.py
"""
Generic record store used by the guarded handlers.

Filters are SQLAlchemy predicates; the ownership predicate built by
app.crud.scoping is passed in alongside any handler filters.
"""
from __future__ import annotations

from typing import Any, Sequence, TypeVar

from sqlalchemy import delete as sa_delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


async def find(
    db: AsyncSession,
    model: type[ModelT],
    *filters: Any,
    order_by: Any = None,
    limit: int | None = None,
) -> list[ModelT]:
    stmt = select(model).where(*filters)
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    if limit is not None:
        stmt = stmt.limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def get_one(db: AsyncSession, model: type[ModelT], *filters: Any) -> ModelT | None:
    res = await db.execute(select(model).where(*filters).limit(1))
    return res.scalar_one_or_none()


async def insert(db: AsyncSession, model: type[ModelT], **values: Any) -> ModelT:
    obj = model(**values)
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


async def update(
    db: AsyncSession,
    model: type[ModelT],
    filters: Sequence[Any],
    patch: dict[str, Any],
) -> ModelT | None:
    """
    Apply `patch` to the single row matching `filters`.
    Returns None (and writes nothing) when no row matches.
    """
    obj = await get_one(db, model, *filters)
    if obj is None:
        return None

    for field, value in patch.items():
        setattr(obj, field, value)

    await db.commit()
    await db.refresh(obj)
    return obj


async def delete(db: AsyncSession, model: type[ModelT], *filters: Any) -> int:
    res = await db.execute(sa_delete(model).where(*filters))
    await db.commit()
    return int(res.rowcount or 0)
