from sqlalchemy import Column, Integer, String
from kakeibo.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    type = Column(String(20), nullable=False, default="expense")  # income/expense
