from sqlalchemy import Column, String, BigInteger, DateTime, Enum, func
import enum
import uuid

from donation_checkout.models.base import Base


class CampaignStatus(enum.Enum):
    """Publication state of a fundraising campaign"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Campaign(Base):
    """Fundraising campaign donations are collected for"""
    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug = Column(String, nullable=False, unique=True, index=True)
    title = Column(String, nullable=False)
    target_amount = Column(BigInteger, nullable=False, default=0)
    raised_amount = Column(BigInteger, nullable=False, default=0)
    status = Column(Enum(CampaignStatus), nullable=False, default=CampaignStatus.DRAFT)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Campaign(id={self.id}, slug='{self.slug}', status='{self.status.value}')>"
