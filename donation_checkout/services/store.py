"""
Session-owning facade over DonationService for the client library
"""
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from donation_checkout.schemas.donation import (
    CampaignResponse,
    CreateDonationRequest,
    DonationResponse,
)
from donation_checkout.services.donation import DonationService


class DonationStore:
    """Opens one short-lived session per call"""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from donation_checkout.database.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    async def create_pending_donation(self, donation_data: CreateDonationRequest) -> DonationResponse:
        async with self.session_factory() as db:
            return await DonationService.create_donation(db, donation_data)

    async def get_donation(self, donation_id: str) -> Optional[DonationResponse]:
        async with self.session_factory() as db:
            return await DonationService.get_donation(db, donation_id)

    async def get_campaign_by_slug(self, slug: str) -> Optional[CampaignResponse]:
        async with self.session_factory() as db:
            return await DonationService.get_campaign_by_slug(db, slug)
