import logging

from .exceptions import Unauthorized

logger = logging.getLogger(__name__)

STUDENT = "student"
LECTURER = "lecturer"
ADMIN = "admin"
FINANCE = "finance"

ROLES = (STUDENT, LECTURER, ADMIN, FINANCE)


def ensure_role(actor_role: str, required: str, action: str) -> None:
    # role claims are trusted verbatim; only the comparison happens here
    if actor_role != required:
        logger.warning("Refused to %s for role %r", action, actor_role)
        raise Unauthorized(
            f"Role '{actor_role}' may not {action}; '{required}' required.",
            field="actor_role",
            value=actor_role,
        )


def role_of(user) -> str:
    if not getattr(user, "is_authenticated", False):
        return ""
    return getattr(user, "role", "") or ""
