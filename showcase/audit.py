import json
from datetime import datetime, timezone
from typing import Optional

from showcase.logging import audit_logger, logger


def audit_prompt_change(
    use_case: str,
    action: str, # "update", "rollback"
    from_version: int,
    to_version: int,
    editor: Optional[str] = None,
):
    """
    Logs a prompt mutation for auditing purposes.

    Args:
        use_case: The use-case whose prompt changed.
        action: "update" for a save, "rollback" for a rollback.
        from_version: The active version before the change (0 if none).
        to_version: The new active version.
        editor: Identity of the editor, if known.
    """
    try:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "prompt_change",
            "use_case": use_case,
            "action": action,
            "from_version": from_version,
            "to_version": to_version,
            "editor": editor or "unknown",
        }

        audit_logger.info(json.dumps(log_entry))

    except Exception as e:
        # Audit logging failures must not break the prompt write.
        logger.error(f"Failed to write audit log: {e}", exc_info=True)
