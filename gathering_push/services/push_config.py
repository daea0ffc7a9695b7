"""Active configuration for IRL gathering pushes."""

import logging
from typing import Optional, List

from sqlalchemy.orm import Session

from gathering_push.exceptions import NotFoundException
from gathering_push.models.push_config import GatheringPushConfig
from gathering_push.schemas.push_config import PushConfigCreate, PushConfigUpdate
from gathering_push.services import audit

logger = logging.getLogger(__name__)


class PushConfigService:
    """Resolves and mutates the single active GatheringPushConfig row."""

    def __init__(self, db: Session):
        self.db = db

    def get_active_or_none(self) -> Optional[GatheringPushConfig]:
        cfg = (
            self.db.query(GatheringPushConfig)
            .filter(GatheringPushConfig.is_active.is_(True))
            .order_by(GatheringPushConfig.updated_at.desc())
            .first()
        )
        if not cfg:
            logger.warning("[config] active config not found (is_active=true)")
        return cfg

    def get_active_or_raise(self) -> GatheringPushConfig:
        cfg = self.get_active_or_none()
        if not cfg:
            raise NotFoundException("Active IRL gathering push config not found")
        return cfg

    def list_configs(self) -> List[GatheringPushConfig]:
        return (
            self.db.query(GatheringPushConfig)
            .order_by(GatheringPushConfig.created_at.desc())
            .all()
        )

    def create_and_activate(self, data: PushConfigCreate, updated_by: Optional[str] = None) -> GatheringPushConfig:
        """Insert a new config and make it the only active one, in one transaction."""
        try:
            self._deactivate_all()
            cfg = GatheringPushConfig(
                is_active=True,
                updated_by=updated_by,
                **data.model_dump(),
            )
            self.db.add(cfg)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(cfg)
        logger.info(f"[config] created and activated config {cfg.id}")
        audit.log_config_activated(cfg.id, updated_by, created=True)
        return cfg

    def update(self, config_id: str, data: PushConfigUpdate, updated_by: Optional[str] = None) -> GatheringPushConfig:
        cfg = self.db.query(GatheringPushConfig).filter(GatheringPushConfig.id == config_id).first()
        if not cfg:
            raise NotFoundException(f"Config not found: {config_id}")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(cfg, field, value)
        if updated_by is not None:
            cfg.updated_by = updated_by
        self.db.commit()
        self.db.refresh(cfg)
        audit.log_config_updated(cfg.id, updated_by, sorted(changes))
        return cfg

    def activate(self, config_id: str, updated_by: Optional[str] = None) -> GatheringPushConfig:
        """Deactivate every row and activate ``config_id`` in one transaction."""
        cfg = self.db.query(GatheringPushConfig).filter(GatheringPushConfig.id == config_id).first()
        if not cfg:
            raise NotFoundException(f"Config not found: {config_id}")
        try:
            self._deactivate_all()
            cfg.is_active = True
            if updated_by is not None:
                cfg.updated_by = updated_by
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(cfg)
        logger.info(f"[config] activated config {cfg.id}")
        audit.log_config_activated(cfg.id, updated_by, created=False)
        return cfg

    def _deactivate_all(self):
        # Runs inside the caller's transaction; the partial unique index requires
        # this statement to land before the target row is switched on.
        self.db.query(GatheringPushConfig).filter(
            GatheringPushConfig.is_active.is_(True)
        ).update({GatheringPushConfig.is_active: False}, synchronize_session="fetch")
        self.db.flush()
