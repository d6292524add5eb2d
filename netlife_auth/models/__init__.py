"""
Models package
"""
from .login_code import LoginCode
from .user import User

__all__ = ["LoginCode", "User"]
