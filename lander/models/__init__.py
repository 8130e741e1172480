"""SQLAlchemy models for the Lander backend."""

from .base import Base
from .user import User
from .email_verification import EmailVerification
from .promo_code import PromoCode
from .voting import Vote, Voting
from .animation import Animation
from .landing import Landing

__all__ = [
    "Base",
    "User",
    "EmailVerification",
    "PromoCode",
    "Voting",
    "Vote",
    "Animation",
    "Landing",
]
