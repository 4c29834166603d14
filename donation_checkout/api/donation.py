from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_checkout.database.database import get_db
from donation_checkout.schemas.donation import DonationResponse
from donation_checkout.services.donation import DonationService

router = APIRouter(prefix="/donations", tags=["donations"])
logger = structlog.get_logger(__name__)


@router.get("/{donation_id}", response_model=DonationResponse)
async def get_donation(
    donation_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a donation's reconciliation projection by ID"""
    try:
        donation = await DonationService.get_donation(db=db, donation_id=donation_id)
        if not donation:
            raise HTTPException(status_code=404, detail="Donation not found")
        return donation
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to get donation", error=str(e), donation_id=donation_id)
        raise HTTPException(status_code=500, detail="Internal server error")
