from enum import Enum
from typing import Iterable


class Role(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


ADMIN_ROLES = (Role.ADMIN,)
STAFF_ROLES = (Role.ADMIN, Role.OPERATOR)
READ_ROLES = (Role.ADMIN, Role.OPERATOR, Role.VIEWER)


def has_required_role(user_roles: Iterable[Role], required: Iterable[Role]) -> bool:
    user_roles_set = {Role(r) for r in user_roles}
    required_set = {Role(r) for r in required}
    return bool(user_roles_set & required_set)
