from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_checkout.core.errors import IntentCreationError
from donation_checkout.models import Campaign, Donation, DonationChannel, DonationStatus
from donation_checkout.schemas.donation import (
    CampaignResponse,
    CreateDonationRequest,
    DonationResponse,
)

logger = structlog.get_logger(__name__)


def _to_donation_response(db_donation: Donation) -> DonationResponse:
    return DonationResponse(
        id=db_donation.id,
        campaign_id=db_donation.campaign_id,
        amount=db_donation.amount,
        donor_name=db_donation.donor_name,
        is_anonymous=db_donation.is_anonymous,
        channel=db_donation.channel.value,
        status=db_donation.status.value,
        created_at=db_donation.created_at,
        paid_at=db_donation.paid_at,
    )


def _to_campaign_response(db_campaign: Campaign) -> CampaignResponse:
    return CampaignResponse(
        id=db_campaign.id,
        slug=db_campaign.slug,
        title=db_campaign.title,
        target_amount=db_campaign.target_amount or 0,
        raised_amount=db_campaign.raised_amount or 0,
        status=db_campaign.status.value,
    )


class DonationService:
    """Persistence operations for donations and the campaigns they fund"""

    @staticmethod
    async def create_donation(db: AsyncSession, donation_data: CreateDonationRequest) -> DonationResponse:
        """Insert a donation with PENDING status and return it with its generated id"""
        try:
            db_donation = Donation(
                campaign_id=donation_data.campaign_id,
                amount=donation_data.amount,
                donor_name=None if donation_data.is_anonymous else donation_data.donor_name,
                donor_email=donation_data.donor_email,
                donor_phone=donation_data.donor_phone,
                is_anonymous=donation_data.is_anonymous,
                message=donation_data.message,
                channel=DonationChannel(donation_data.channel.value),
                status=DonationStatus.PENDING,
            )

            db.add(db_donation)
            await db.commit()
            await db.refresh(db_donation)

            logger.info("Donation created successfully",
                        donation_id=db_donation.id,
                        campaign_id=db_donation.campaign_id,
                        amount=db_donation.amount,
                        channel=db_donation.channel.value)

            return _to_donation_response(db_donation)

        except Exception as e:
            await db.rollback()
            logger.error("Failed to create donation", error=str(e), campaign_id=donation_data.campaign_id)
            raise IntentCreationError(f"Failed to create donation: {str(e)}") from e

    @staticmethod
    async def get_donation(db: AsyncSession, donation_id: str) -> Optional[DonationResponse]:
        """Get a donation by ID"""
        result = await db.execute(select(Donation).where(Donation.id == donation_id))
        db_donation = result.scalar_one_or_none()

        if not db_donation:
            logger.debug("Donation not found", donation_id=donation_id)
            return None

        return _to_donation_response(db_donation)

    @staticmethod
    async def get_campaign_by_slug(db: AsyncSession, slug: str) -> Optional[CampaignResponse]:
        result = await db.execute(select(Campaign).where(Campaign.slug == slug))
        db_campaign = result.scalar_one_or_none()

        if not db_campaign:
            logger.warning("Campaign not found", slug=slug)
            return None

        return _to_campaign_response(db_campaign)

    @staticmethod
    async def apply_payment_status(
        db: AsyncSession,
        donation_id: str,
        new_status: DonationStatus,
        paid_at: Optional[datetime] = None,
    ) -> Tuple[Optional[DonationResponse], bool]:
        """
        Move a pending donation to a terminal status.

        Returns the donation (None when unknown) and whether the row changed.
        Rows that are already paid or failed are never touched again. A
        transition to PAID stamps paid_at and adds the amount to the
        campaign's raised_amount in the same transaction.
        """
        try:
            result = await db.execute(
                select(Donation).where(Donation.id == donation_id).with_for_update()
            )
            db_donation = result.scalar_one_or_none()

            if not db_donation:
                logger.warning("Donation not found for status update", donation_id=donation_id)
                return None, False

            if db_donation.status is not DonationStatus.PENDING or not new_status.is_terminal:
                logger.info("Donation status left unchanged",
                            donation_id=donation_id,
                            current_status=db_donation.status.value,
                            requested_status=new_status.value)
                return _to_donation_response(db_donation), False

            db_donation.status = new_status
            if new_status is DonationStatus.PAID:
                db_donation.paid_at = paid_at or datetime.now(timezone.utc)
                await db.execute(
                    update(Campaign)
                    .where(Campaign.id == db_donation.campaign_id)
                    .values(raised_amount=Campaign.raised_amount + db_donation.amount)
                )

            await db.commit()
            await db.refresh(db_donation)

            logger.info("Donation status updated",
                        donation_id=donation_id,
                        new_status=new_status.value)

            return _to_donation_response(db_donation), True

        except Exception as e:
            await db.rollback()
            logger.error("Failed to update donation", error=str(e), donation_id=donation_id)
            raise
