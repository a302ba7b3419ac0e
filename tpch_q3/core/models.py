from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    String,
    Numeric,
    Float,
    TIMESTAMP,
)
from sqlalchemy.sql import func

from tpch_q3.core.database import Base


# Column declaration order is the physical column order the engine reads by
# position, keep it identical to the TPC-H layout.

# Prices and discounts come back as float so the engine sees doubles
Money = Numeric(15, 2, asdecimal=False)

# Dates stay in their dbgen text form (YYYY-MM-DD), the engine parses them
DateText = String(10)


# =========================
# Customer
# =========================
class Customer(Base):
    __tablename__ = "customer"

    c_custkey = Column(BigInteger, primary_key=True, autoincrement=False)
    c_name = Column(String(25), nullable=False)
    c_address = Column(String(40), nullable=False)
    c_nationkey = Column(BigInteger, nullable=False)
    c_phone = Column(String(15), nullable=False)
    c_acctbal = Column(Money, nullable=False)
    c_mktsegment = Column(String(10), nullable=False, index=True)
    c_comment = Column(String(117), nullable=False)


# =========================
# Orders
# =========================
class Order(Base):
    __tablename__ = "orders"

    o_orderkey = Column(BigInteger, primary_key=True, autoincrement=False)
    o_custkey = Column(BigInteger, nullable=False, index=True)
    o_orderstatus = Column(String(1), nullable=False)
    o_totalprice = Column(Money, nullable=False)
    o_orderdate = Column(DateText, nullable=False)
    o_orderpriority = Column(String(15), nullable=False)
    o_clerk = Column(String(15), nullable=False)
    o_shippriority = Column(Integer, nullable=False)
    o_comment = Column(String(79), nullable=False)


# =========================
# Line item
# =========================
class LineItem(Base):
    """
    One row per shipped part of an order.
    (l_orderkey, l_linenumber) identifies a line item.
    """

    __tablename__ = "lineitem"

    l_orderkey = Column(BigInteger, primary_key=True, autoincrement=False)
    l_partkey = Column(BigInteger, nullable=False)
    l_suppkey = Column(BigInteger, nullable=False)
    l_linenumber = Column(Integer, primary_key=True, autoincrement=False)
    l_quantity = Column(Money, nullable=False)
    l_extendedprice = Column(Money, nullable=False)
    l_discount = Column(Money, nullable=False)
    l_tax = Column(Money, nullable=False)
    l_returnflag = Column(String(1), nullable=False)
    l_linestatus = Column(String(1), nullable=False)
    l_shipdate = Column(DateText, nullable=False)
    l_commitdate = Column(DateText, nullable=False)
    l_receiptdate = Column(DateText, nullable=False)
    l_shipinstruct = Column(String(25), nullable=False)
    l_shipmode = Column(String(10), nullable=False)
    l_comment = Column(String(44), nullable=False)


# =========================
# Query result sink
# =========================
class QueryResult(Base):
    """
    Persisted output of a shipping priority query run.

    Rows of one run share run_id; position keeps the final sort order
    (revenue desc, order date asc, order key asc).
    """

    __tablename__ = "q3_result"

    id = Column(Integer, primary_key=True, autoincrement=True)

    run_id = Column(String(32), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    l_orderkey = Column(BigInteger, nullable=False)
    revenue = Column(Float, nullable=False)
    o_orderdate = Column(DateText, nullable=False)
    o_shippriority = Column(Integer, nullable=False)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


# Models the ingest path and the table endpoints accept, keyed by table name
TABLE_MODELS = {
    Customer.__tablename__: Customer,
    Order.__tablename__: Order,
    LineItem.__tablename__: LineItem,
}
