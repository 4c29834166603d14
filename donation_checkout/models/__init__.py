from donation_checkout.models.base import Base
from donation_checkout.models.campaign import Campaign, CampaignStatus
from donation_checkout.models.donation import Donation, DonationChannel, DonationStatus

__all__ = [
    "Base",
    "Campaign",
    "CampaignStatus",
    "Donation",
    "DonationChannel",
    "DonationStatus",
]
