"""Drinking partner CRUD."""

import logging

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, HTTPException, status
from pydantic import ValidationError

from pourtrait.models import DrinkingPartner
from pourtrait.models._common import utc_now
from pourtrait.schemas.partner import PartnerCreate, PartnerResponse, PartnerUpdate
from pourtrait.services.auth import RequireAuth

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_owned_partner(partner_id: str, current_user) -> DrinkingPartner:
    try:
        partner = await DrinkingPartner.find_one(
            DrinkingPartner.id == PydanticObjectId(partner_id),
            DrinkingPartner.owner_id == current_user.id,
        )
    except (InvalidId, ValidationError):
        partner = None
    if partner is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Partner with ID {partner_id} not found",
        )
    return partner


@router.post("", response_model=PartnerResponse, status_code=status.HTTP_201_CREATED)
async def create_partner(partner_data: PartnerCreate, current_user: RequireAuth) -> PartnerResponse:
    partner = DrinkingPartner(owner_id=current_user.id, **partner_data.model_dump())
    await partner.insert()
    logger.info("Added drinking partner %s (user=%s)", partner.id, current_user.id)
    return PartnerResponse.model_validate(partner)


@router.get("", response_model=list[PartnerResponse])
async def list_partners(current_user: RequireAuth) -> list[PartnerResponse]:
    partners = (
        await DrinkingPartner.find(DrinkingPartner.owner_id == current_user.id)
        .sort("+name")
        .to_list()
    )
    return [PartnerResponse.model_validate(p) for p in partners]


@router.get("/{partner_id}", response_model=PartnerResponse)
async def get_partner(partner_id: str, current_user: RequireAuth) -> PartnerResponse:
    return PartnerResponse.model_validate(await _get_owned_partner(partner_id, current_user))


@router.put("/{partner_id}", response_model=PartnerResponse)
async def update_partner(
    partner_id: str,
    partner_update: PartnerUpdate,
    current_user: RequireAuth,
) -> PartnerResponse:
    partner = await _get_owned_partner(partner_id, current_user)
    for field, value in partner_update.model_dump(exclude_unset=True).items():
        setattr(partner, field, value)
    partner.updated_at = utc_now()
    await partner.save()
    return PartnerResponse.model_validate(partner)


@router.delete("/{partner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_partner(partner_id: str, current_user: RequireAuth) -> None:
    partner = await _get_owned_partner(partner_id, current_user)
    await partner.delete()
