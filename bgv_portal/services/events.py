from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.models.event import BgvRecordEvent
from bgv_portal.request_context import RequestContext

logger = logging.getLogger("bgv.events")


async def log_event(
    session: AsyncSession,
    *,
    record_kind: str,
    record_id: int,
    action_type: str,
    from_status: str | None = None,
    to_status: str | None = None,
    performed_by: str | None = None,
    meta_json: Dict[str, Any] | None = None,
    context: RequestContext | None = None,
) -> BgvRecordEvent:
    meta_text: Optional[str] = None
    if meta_json is not None:
        meta_text = json.dumps(meta_json, ensure_ascii=False, separators=(",", ":"), default=str)

    event = BgvRecordEvent(
        record_kind=record_kind,
        record_id=record_id,
        action_type=action_type,
        from_status=from_status,
        to_status=to_status,
        performed_by=performed_by,
        meta_json=meta_text,
        ip=context.ip if context else None,
        user_agent=context.user_agent if context else None,
    )
    session.add(event)
    await session.flush()
    logger.info(
        "record_event",
        extra={
            "record_kind": record_kind,
            "record_id": record_id,
            "action_type": action_type,
            "to_status": to_status,
        },
    )
    return event
