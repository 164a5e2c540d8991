# src/services/base_service.py
from typing import Type, TypeVar, List, Optional, Any, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.interfaces import ORMOption
from utils.logger import setup_logger
from utils.exceptions import handle_db_exception

ModelType = TypeVar("ModelType")


class BaseService:
    def __init__(self, model: Type[ModelType]):
        self.model = model
        self.logger = setup_logger(f"SERVICE_{model.__name__.upper()}")

    async def get(
        self,
        db: AsyncSession,
        id: Any,
        options: Sequence[ORMOption] = (),
    ) -> Optional[ModelType]:
        """Get a single item by ID"""
        try:
            query = (
                select(self.model)
                .where(self.model.id == id)
                .options(*options)
                .execution_options(populate_existing=True)
            )
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await handle_db_exception(db, self.logger, f"get {self.model.__name__}", e)

    async def get_multi(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 100,
        order_by: Any = None,
    ) -> List[ModelType]:
        """Get multiple items with pagination"""
        try:
            query = select(self.model)
            if order_by is not None:
                query = query.order_by(order_by)
            result = await db.execute(query.offset(skip).limit(limit))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await handle_db_exception(
                db, self.logger, f"get_multi {self.model.__name__}", e
            )

