"""
Scoring weight settings endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies import ClientIdentity, require_authenticated_client
from app.domain.analysis import Weights
from app.domain.errors import InvalidWeightsError
from app.logging_utils import log_event
from app.schemas.analysis import WeightsPayload
from db.repositories.settings_repository import SettingsRepository
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/weights", response_model=WeightsPayload)
def get_weights(db: Session = Depends(get_db)) -> WeightsPayload:
    try:
        weights = SettingsRepository(db).get_weights()
    except InvalidWeightsError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return WeightsPayload(**weights.as_dict())


@router.put("/weights", response_model=WeightsPayload)
def update_weights(
    payload: WeightsPayload,
    identity: ClientIdentity = Depends(require_authenticated_client),
    db: Session = Depends(get_db),
) -> WeightsPayload:
    try:
        weights = Weights(**payload.model_dump())
    except InvalidWeightsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    SettingsRepository(db).save_weights(weights)
    db.commit()
    log_event(logger, logging.INFO, "weights_updated", client_id=identity.client_id, **weights.as_dict())
    return WeightsPayload(**weights.as_dict())
