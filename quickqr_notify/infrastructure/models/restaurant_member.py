"""SQLAlchemy model mirroring restaurant ownership and staff membership.

Rows are written by the restaurant management service; this service only reads
them to decide which topics a channel joins.
"""

from sqlalchemy import Column, Integer, String, UniqueConstraint

from quickqr_notify.infrastructure.database import Base

MEMBER_ROLE_OWNER = "owner"
MEMBER_ROLE_STAFF = "staff"


class RestaurantMemberModel(Base):
    """Link between a user identity and a restaurant topic."""

    __tablename__ = "restaurant_member"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "user_id", name="uq_restaurant_member"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(String(64), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=MEMBER_ROLE_OWNER)


__all__ = ["RestaurantMemberModel", "MEMBER_ROLE_OWNER", "MEMBER_ROLE_STAFF"]
