"""Synced marketplace order models (read-only to the reports engine)."""

import uuid

from sqlalchemy import BigInteger, Column, Index, JSON, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID

from order_reports.database import Base


class ShopeeOrder(Base):
    """Order snapshot written by the Shopee sync pipeline."""
    __tablename__ = "apishopee_orders"
    __table_args__ = (
        Index("ix_apishopee_orders_shop_create", "shop_id", "create_time"),
        Index("ix_apishopee_orders_shop_status_update", "shop_id", "order_status", "update_time"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(BigInteger, nullable=False, index=True)
    order_sn = Column(String(64), nullable=False)
    order_status = Column(String(32), default="UNPAID")

    # Epoch seconds (UTC) as returned by the vendor API
    create_time = Column(BigInteger, nullable=False)
    update_time = Column(BigInteger, nullable=True)

    total_amount = Column(Numeric(14, 2), default=0)
    item_list = Column(JSON, default=list)

    actual_shipping_fee = Column(Numeric(14, 2), nullable=True)
    estimated_shipping_fee = Column(Numeric(14, 2), nullable=True)
    buyer_paid_shipping_fee = Column(Numeric(14, 2), nullable=True)
    cod_fee = Column(Numeric(14, 2), nullable=True)
    insurance_fee = Column(Numeric(14, 2), nullable=True)
    service_fee = Column(Numeric(14, 2), nullable=True)
    transaction_fee = Column(Numeric(14, 2), nullable=True)
    commission_fee = Column(Numeric(14, 2), nullable=True)
    seller_discount = Column(Numeric(14, 2), nullable=True)
    coins = Column(Numeric(14, 2), nullable=True)
    voucher_from_seller = Column(Numeric(14, 2), nullable=True)
    buyer_txn_fee = Column(Numeric(14, 2), nullable=True)

    cancel_reason = Column(Text, nullable=True)
    buyer_cancel_reason = Column(Text, nullable=True)
    cancel_by = Column(String(32), nullable=True)

    def to_dict(self) -> dict:
        """Raw record as the aggregation layer consumes it."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
            if column.name != "id"
        }
