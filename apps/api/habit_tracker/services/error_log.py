from __future__ import annotations

import logging
import traceback
from typing import Any

from habit_tracker.services.privacy import redact_secrets_text, sanitize_for_log
from habit_tracker.services.supabase_rest import SupabaseRest

logger = logging.getLogger(__name__)


async def log_system_error(
    store: SupabaseRest | None,
    *,
    route: str,
    message: str,
    user_id: str | None = None,
    err: BaseException | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    # Best-effort logging; never raise.
    logger.error("%s (route=%s)", message, route, exc_info=err)
    if store is None:
        return
    try:
        stack = None
        if err is not None:
            raw_stack = "".join(
                traceback.format_exception(type(err), err, err.__traceback__)
            )[:8000]
            stack = redact_secrets_text(raw_stack)

        row: dict[str, Any] = {
            "route": sanitize_for_log(route),
            "message": sanitize_for_log(message),
            "stack": stack,
            "user_id": user_id,
            "meta": sanitize_for_log(meta or {}),
        }
        await store.insert_one("system_errors", row=row)
    except Exception:
        logger.warning("Failed to persist system error row", exc_info=True)
