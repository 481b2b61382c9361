from clearing_api.models.org import Desk, Organization
from clearing_api.models.role import Role, RoleAssignment
from clearing_api.models.user import User

__all__ = [
    # Organizational structure
    "Organization",
    "Desk",
    # RBAC
    "Role",
    "RoleAssignment",
    # Users
    "User",
]
