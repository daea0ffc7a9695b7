"""Admin endpoints for the IRL gathering push configuration."""

from typing import List
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gathering_push.db import get_db
from gathering_push.schemas.push_config import PushConfigCreate, PushConfigUpdate, PushConfigOut
from gathering_push.services.auth import Operator, require_admin
from gathering_push.services.push_config import PushConfigService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/irl-gathering-push", tags=["IRL Gathering Push"])


@router.get("/configs", response_model=List[PushConfigOut])
def list_configs(
    db: Session = Depends(get_db),
    _: Operator = Depends(require_admin),
):
    return PushConfigService(db).list_configs()


@router.get("/configs/active", response_model=PushConfigOut)
def get_active_config(
    db: Session = Depends(get_db),
    _: Operator = Depends(require_admin),
):
    return PushConfigService(db).get_active_or_raise()


@router.post("/configs", response_model=PushConfigOut, status_code=201)
def create_config(
    payload: PushConfigCreate,
    db: Session = Depends(get_db),
    operator: Operator = Depends(require_admin),
):
    """Create a config and make it the only active one."""
    return PushConfigService(db).create_and_activate(payload, updated_by=operator.uid)


@router.patch("/configs/{config_id}", response_model=PushConfigOut)
def update_config(
    config_id: str,
    payload: PushConfigUpdate,
    db: Session = Depends(get_db),
    operator: Operator = Depends(require_admin),
):
    return PushConfigService(db).update(config_id, payload, updated_by=operator.uid)


@router.post("/configs/{config_id}/activate", response_model=PushConfigOut)
def activate_config(
    config_id: str,
    db: Session = Depends(get_db),
    operator: Operator = Depends(require_admin),
):
    return PushConfigService(db).activate(config_id, updated_by=operator.uid)
