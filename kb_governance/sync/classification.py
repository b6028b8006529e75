"""Classify synced articles into internal systems through ``kb_menu_map``.

Every synced article gets a ``system_code``. A menu with an active mapping
takes the mapped system; a missing menu (``MENU_NULL``) or one with no active
mapping (``MENU_NOT_MAPPED``) falls back to the generic system so the article
is never left unclassified.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from kb_governance.errors import NotFoundError, ValidationError
from kb_governance.governance.detectors.inconsistent import GENERIC_SYSTEM_CODE
from kb_governance.models import MenuMap
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

SOURCE_SYSTEM = "movidesk"
REASON_MENU_NULL = "MENU_NULL"
REASON_MENU_NOT_MAPPED = "MENU_NOT_MAPPED"


@dataclass(frozen=True)
class Classification:
    system_code: str
    # None when an active mapping matched.
    fallback_reason: str | None = None


def find_active_mapping(
    session, menu_id: int, source_system: str = SOURCE_SYSTEM
) -> MenuMap | None:
    stmt = select(MenuMap).where(
        MenuMap.source_system == source_system,
        MenuMap.source_menu_id == menu_id,
        MenuMap.active.is_(True),
    )
    return session.execute(stmt).scalars().first()


def resolve_system(
    session, article_id: int, menu_id: int | None, menu_name: str | None
) -> Classification:
    if menu_id is None:
        logger.warning(
            "🧭 Classified as %s: menu is null. id=%s", GENERIC_SYSTEM_CODE, article_id
        )
        return Classification(GENERIC_SYSTEM_CODE, REASON_MENU_NULL)

    mapping = find_active_mapping(session, menu_id)
    if mapping is None:
        logger.warning(
            "🧭 Classified as %s: menu not mapped. id=%s menuId=%s menuName=%r",
            GENERIC_SYSTEM_CODE,
            article_id,
            menu_id,
            (menu_name or "")[:150],
        )
        return Classification(GENERIC_SYSTEM_CODE, REASON_MENU_NOT_MAPPED)

    logger.debug(
        "Classified id=%s menuId=%s systemCode=%s", article_id, menu_id, mapping.system_code
    )
    return Classification(mapping.system_code)


class MenuMapService:
    """Maintain the menu -> system mappings without a deploy."""

    def __init__(self, db, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    def list_mappings(self, include_inactive: bool = False) -> list[MenuMap]:
        stmt = select(MenuMap).order_by(MenuMap.source_menu_id, MenuMap.id)
        if not include_inactive:
            stmt = stmt.where(MenuMap.active.is_(True))
        with self.db.get_session() as session:
            return list(session.execute(stmt).scalars())

    def set_mapping(
        self, menu_id: int, system_code: str, menu_name: str | None = None
    ) -> MenuMap:
        """Point ``menu_id`` at ``system_code``, retiring any previous mapping."""
        code = (system_code or "").strip().upper()
        if not code:
            raise ValidationError("system_code is required")

        now = self.clock()
        with self.db.get_session() as session:
            current = find_active_mapping(session, menu_id)
            if current is not None:
                if current.system_code == code:
                    if menu_name:
                        current.source_menu_name = menu_name
                    return current
                current.active = False
                current.updated_at = now
                # Retire before inserting; the active row is unique per menu.
                session.flush()

            mapping = MenuMap(
                source_system=SOURCE_SYSTEM,
                source_menu_id=menu_id,
                source_menu_name=menu_name or (current.source_menu_name if current else None),
                system_code=code,
                active=True,
                created_at=now,
                updated_at=now,
            )
            session.add(mapping)
        logger.info("Menu %s mapped to system %s", menu_id, code)
        return mapping

    def deactivate(self, menu_id: int) -> MenuMap:
        with self.db.get_session() as session:
            mapping = find_active_mapping(session, menu_id)
            if mapping is None:
                raise NotFoundError(f"No active mapping for menu {menu_id}")
            mapping.active = False
            mapping.updated_at = self.clock()
        logger.info("Menu %s mapping deactivated", menu_id)
        return mapping
