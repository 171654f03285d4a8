"""Declarative base shared by the ledger and tax models."""
from sqlalchemy.orm import DeclarativeBase, declared_attr

from rentbooks.db.types import MoneyType
from rentbooks.utils.money import Money


class Base(DeclarativeBase):
    # Mapped[Money] columns are stored as integer cents
    type_annotation_map = {Money: MoneyType()}

    @declared_attr.directive
    def __tablename__(cls) -> str:  # type: ignore
        return cls.__name__.lower()
