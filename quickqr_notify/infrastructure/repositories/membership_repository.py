"""Read access to restaurant membership rows."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from quickqr_notify.infrastructure.models import RestaurantMemberModel


class RestaurantMembershipRepository:
    """Answer which restaurant topics a user identity belongs to."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_restaurant_ids(self, user_id: str) -> list[str]:
        query = (
            select(RestaurantMemberModel.restaurant_id)
            .where(RestaurantMemberModel.user_id == user_id)
            .order_by(RestaurantMemberModel.restaurant_id)
        )
        return list(dict.fromkeys(self.session.scalars(query)))


__all__ = ["RestaurantMembershipRepository"]
