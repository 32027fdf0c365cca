"""
Account Service

Registration and password login. Passwords are stored as werkzeug
salted hashes; the HTTP layer keeps only the user id in the signed
session cookie and resolves it back to an ``Identity`` per request.
"""

import logging
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from bistro.core.errors import AuthenticationRequired, ValidationError
from bistro.schemas import Identity, LoginRequest, RegisterRequest, User, UserRole
from bistro.storage.base import BaseStore

logger = logging.getLogger(__name__)


class AuthService:

    def __init__(self, store: BaseStore):
        self.store = store

    async def register(self, data: RegisterRequest) -> User:
        """Create a customer account. Usernames and emails are unique, ignoring case."""
        errors: dict[str, str] = {}
        if await self.store.get_user_by_username(data.username):
            errors["username"] = "Username already exists"
        if await self.store.get_user_by_email(data.email):
            errors["email"] = "Email already registered"
        if errors:
            raise ValidationError("Account already exists", details=errors)

        user = await self.store.create_user(
            username=data.username,
            email=data.email,
            full_name=data.full_name,
            password_hash=generate_password_hash(data.password),
            phone=data.phone,
            role=UserRole.CUSTOMER,
        )
        logger.info(f"Registered user #{user.id} '{user.username}'")
        return user

    async def login(self, data: LoginRequest) -> User:
        user = await self.store.get_user_by_username(data.username)
        if user is None or not check_password_hash(user.password_hash, data.password):
            logger.info(f"Failed login for '{data.username}'")
            raise AuthenticationRequired("Invalid username or password")
        logger.info(f"User #{user.id} '{user.username}' logged in")
        return user

    async def identity_for(self, user_id: Optional[int]) -> Optional[Identity]:
        """Resolve a session's user id; None if absent or the user is gone."""
        if user_id is None:
            return None
        user = await self.store.get_user(user_id)
        return Identity.from_user(user) if user else None

    async def get_user(self, identity: Identity) -> Optional[User]:
        return await self.store.get_user(identity.user_id)
