from sqlalchemy import Column, String, BigInteger, DateTime, func, Enum, Text, Boolean, ForeignKey
import enum
import uuid

from donation_checkout.models.base import Base


class DonationStatus(enum.Enum):
    """Donation lifecycle: pending -> paid | failed"""
    PENDING = "pending"  # Intent created, waiting for the gateway
    PAID = "paid"  # Gateway confirmed settlement
    FAILED = "failed"  # Gateway denied, cancelled or expired the payment

    @property
    def is_terminal(self) -> bool:
        return self is not DonationStatus.PENDING


class DonationChannel(enum.Enum):
    """Payment channel picked on the donate form"""
    QRIS = "qris"
    EWALLET = "ewallet"
    BANK = "bank"


class Donation(Base):
    """Donation row; its id is also the gateway order_id"""
    __tablename__ = "donations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(String(36), ForeignKey("campaigns.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    donor_name = Column(String, nullable=True)  # NULL when anonymous
    donor_email = Column(String, nullable=True)
    donor_phone = Column(String, nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    message = Column(Text, nullable=True)
    channel = Column(Enum(DonationChannel), nullable=False)
    status = Column(Enum(DonationStatus), nullable=False, default=DonationStatus.PENDING, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Donation(id={self.id}, campaign_id={self.campaign_id}, amount={self.amount}, status='{self.status.value}')>"
