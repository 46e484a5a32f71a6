"""
User lookups (collaborator data, read-mostly).
"""
from typing import Optional
from sqlalchemy.orm import Session
from app.model.user import User
from app.crud.base import CRUDBase


class CRUDUser(CRUDBase[User, dict, dict]):
    """User-specific CRUD operations."""

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """Get user by email."""
        return self.get_by_field(db, "email", email)


user_crud = CRUDUser(User)
