from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from db.base import Base


class Category(Base):
    __tablename__ = "Categories"

    CategoryID = Column(Integer, primary_key=True)
    Name = Column(String(255), nullable=False, unique=True)

    Games = relationship("Game", back_populates="Category")


class Game(Base):
    __tablename__ = "Games"
    __table_args__ = (
        CheckConstraint('"StockTotal" >= 0', name="ck_games_stock_total"),
        CheckConstraint('"PricePerDay" >= 0', name="ck_games_price_per_day"),
    )

    GameID = Column(Integer, primary_key=True)
    Name = Column(String(255), nullable=False, unique=True)
    Image = Column(String(1000), nullable=False)
    StockTotal = Column(Integer, nullable=False, default=0)
    CategoryID = Column(Integer, ForeignKey("Categories.CategoryID"), nullable=False)
    PricePerDay = Column(Numeric(12, 2), nullable=False)

    Category = relationship("Category", back_populates="Games")
    Rentals = relationship("Rental", back_populates="Game")


class Customer(Base):
    __tablename__ = "Customers"

    CustomerID = Column(Integer, primary_key=True)
    Name = Column(String(255), nullable=False)
    Phone = Column(String(11), nullable=False)
    Cpf = Column(String(11), nullable=False, unique=True)
    Birthday = Column(Date, nullable=False)

    Rentals = relationship("Rental", back_populates="Customer")


class Rental(Base):
    __tablename__ = "Rentals"
    __table_args__ = (
        CheckConstraint('"DaysRented" >= 1', name="ck_rentals_days_rented"),
        CheckConstraint('"DelayFee" IS NULL OR "DelayFee" >= 0', name="ck_rentals_delay_fee"),
    )

    RentalID = Column(Integer, primary_key=True)
    CustomerID = Column(Integer, ForeignKey("Customers.CustomerID"), nullable=False)
    GameID = Column(Integer, ForeignKey("Games.GameID"), nullable=False)
    RentDate = Column(Date, nullable=False)
    DaysRented = Column(Integer, nullable=False)
    ReturnDate = Column(Date)
    OriginalPrice = Column(Numeric(18, 2), nullable=False)
    DelayFee = Column(Numeric(18, 2))

    Customer = relationship("Customer", back_populates="Rentals")
    Game = relationship("Game", back_populates="Rentals")
