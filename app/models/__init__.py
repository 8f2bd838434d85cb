from .account import Account
from .exam import Exam, Shift
from .user_role import Role, UserRole

__all__ = [
    "Account",
    "Exam",
    "Role",
    "Shift",
    "UserRole",
]
