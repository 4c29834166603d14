from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum

from donation_checkout.utils.money import percent


class DonationStatusEnum(str, Enum):
    """Donation status enumeration for Pydantic"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DonationStatusEnum.PENDING


class DonationChannelEnum(str, Enum):
    """Payment channel enumeration for Pydantic"""
    QRIS = "qris"
    EWALLET = "ewallet"
    BANK = "bank"


class CampaignStatusEnum(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class DonationForm(BaseModel):
    """What the donor typed into the donate form, before any validation"""
    amount: int = 0
    channel: DonationChannelEnum = DonationChannelEnum.QRIS
    name: str = ""
    email: str = ""
    phone: str = ""
    is_anonymous: bool = False
    message: str = ""


class CreateDonationRequest(BaseModel):
    """Schema for inserting a pending donation"""
    campaign_id: str = Field(..., min_length=1, description="Campaign being funded")
    amount: int = Field(..., gt=0, description="Donation amount in rupiah")
    donor_name: Optional[str] = Field(None, description="Null when the donor is anonymous")
    donor_email: Optional[str] = None
    donor_phone: Optional[str] = None
    is_anonymous: bool = False
    message: Optional[str] = Field(None, max_length=1000)
    channel: DonationChannelEnum
    status: DonationStatusEnum = DonationStatusEnum.PENDING

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "campaign_id": "2f1c7d0e-5a57-4c4e-9d3c-4b8b8d2c1a10",
                "amount": 25000,
                "donor_name": "Budi",
                "donor_email": "budi@example.com",
                "donor_phone": None,
                "is_anonymous": False,
                "message": "Semoga lancar",
                "channel": "qris",
                "status": "pending"
            }
        }
    )

    @classmethod
    def from_form(cls, campaign_id: str, form: DonationForm) -> "CreateDonationRequest":
        return cls(
            campaign_id=campaign_id,
            amount=form.amount,
            donor_name=None if form.is_anonymous else (form.name.strip() or None),
            donor_email=form.email.strip() or None,
            donor_phone=form.phone.strip() or None,
            is_anonymous=form.is_anonymous,
            message=form.message.strip() or None,
            channel=form.channel,
        )


class DonationResponse(BaseModel):
    """Read projection used for status reconciliation"""
    id: str
    campaign_id: str
    amount: int
    donor_name: Optional[str]
    is_anonymous: Optional[bool]
    channel: DonationChannelEnum
    status: DonationStatusEnum
    created_at: datetime
    paid_at: Optional[datetime]

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "7d6c1c2e-2c7a-4f0b-8f5b-0f3f8a4f2a11",
                "campaign_id": "2f1c7d0e-5a57-4c4e-9d3c-4b8b8d2c1a10",
                "amount": 25000,
                "donor_name": "Budi",
                "is_anonymous": False,
                "channel": "qris",
                "status": "paid",
                "created_at": "2025-11-21T14:30:00Z",
                "paid_at": "2025-11-21T14:31:12Z"
            }
        }
    )


class CampaignResponse(BaseModel):
    """Campaign fields the checkout needs"""
    id: str
    slug: str
    title: str
    target_amount: int
    raised_amount: int
    status: CampaignStatusEnum

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_published(self) -> bool:
        return self.status == CampaignStatusEnum.PUBLISHED

    @property
    def progress(self) -> int:
        return percent(self.raised_amount, self.target_amount)
