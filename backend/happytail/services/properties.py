"""Named configuration store backed by the ``properties`` table."""

from uuid import uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.db.base import utcnow
from happytail.models.property import Property

logger = structlog.get_logger()

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})

# Dialects with INSERT ... ON CONFLICT support
UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class PropertyStore:
    """Get/set global settings by name.

    ``set`` is a single upsert statement: the row is created on first write
    and there is never more than one row per name.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, name: str) -> Property | None:
        result = await self.db.execute(
            select(Property)
            .where(Property.name == name)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_value(self, name: str, default: str | None = None) -> str | None:
        prop = await self.get(name)
        return prop.value if prop is not None else default

    async def get_flag(self, name: str) -> bool:
        value = await self.get_value(name)
        return value is not None and value.strip().lower() in TRUE_VALUES

    async def set(self, name: str, value: str) -> Property:
        dialect = self.db.get_bind().dialect.name
        insert = UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Property upsert is not supported on {dialect}")

        now = utcnow()
        stmt = insert(Property).values(
            id=uuid4(), name=name, value=value, created_at=now, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Property.name],
            set_={"value": value, "updated_at": now},
        )
        await self.db.execute(stmt)
        await self.db.commit()

        prop = await self.get(name)
        if prop is None:
            raise RuntimeError(f"Property {name} was not stored")
        logger.info("property_set", name=name)
        return prop

    async def set_flag(self, name: str, enabled: bool) -> Property:
        return await self.set(name, "true" if enabled else "false")

    async def list(self) -> list[Property]:
        result = await self.db.execute(select(Property).order_by(Property.name))
        return list(result.scalars().all())
