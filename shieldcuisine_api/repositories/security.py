from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select

from shieldcuisine_api.db.models.security import Role, User, UserRole
from shieldcuisine_api.db.models.tenancy import Location, Tenant
from .base import BaseRepository


class TenantRepository(BaseRepository):
    """Lookup of tenants; tenants themselves are not tenant-scoped."""

    async def get_tenant(self, tenant_id: UUID) -> Optional[Tenant]:
        return await self.scalar_one_or_none(select(Tenant).where(Tenant.id == tenant_id))

    async def get_tenant_by_slug(self, slug: str) -> Optional[Tenant]:
        return await self.scalar_one_or_none(select(Tenant).where(Tenant.slug == slug))

    async def create_tenant(self, name: str, slug: str) -> Tenant:
        tenant = Tenant(name=name, slug=slug)
        self.session.add(tenant)
        await self.commit()
        await self.session.refresh(tenant)
        return tenant


class LocationRepository(BaseRepository):
    """Repository for establishments of the current tenant."""

    async def list_locations(
        self, *, active_only: bool = False, limit: int = 100, offset: int = 0
    ) -> Tuple[List[Location], int]:
        stmt = self.scoped(Location)
        if active_only:
            stmt = stmt.where(Location.is_active.is_(True))
        return await self.paginate(stmt.order_by(Location.name), limit, offset)

    async def get_location(self, location_id: UUID) -> Optional[Location]:
        stmt = self.scoped(Location).where(Location.id == location_id)
        return await self.scalar_one_or_none(stmt)

    async def get_location_by_name(self, name: str) -> Optional[Location]:
        stmt = self.scoped(Location).where(Location.name == name)
        return await self.scalar_one_or_none(stmt)


class SecurityRepository(BaseRepository):
    """Repository for user/role management within a tenant."""

    # Users
    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = self.scoped(User).where(func.lower(User.email) == email.lower())
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        stmt = self.scoped(User).where(User.username == username)
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_login(self, login: str) -> Optional[User]:
        """Find a user by username or, case-insensitively, by email."""
        stmt = self.scoped(User).where(
            or_(User.username == login, func.lower(User.email) == login.lower())
        )
        result = await self.scalars(stmt.limit(1))
        return result.first()

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        stmt = self.scoped(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def count_users(self) -> int:
        return await self.count(self.scoped(User))

    async def list_users(self, limit: int = 100, offset: int = 0) -> Tuple[List[User], int]:
        stmt = self.scoped(User).order_by(User.created_at.desc())
        return await self.paginate(stmt, limit, offset)

    async def list_users_with_role(self, role_name: str) -> List[User]:
        stmt = (
            self.scoped(User)
            .join(UserRole, UserRole.user_id == User.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(Role.name == role_name, User.is_active.is_(True))
        )
        result = await self.scalars(stmt)
        return list(result)

    async def create_user(
        self,
        *,
        username: str,
        email: str,
        full_name: Optional[str],
        hashed_password: str,
        is_active: bool = True,
        is_superadmin: bool = False,
        location_id: Optional[UUID] = None,
    ) -> User:
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            hashed_password=hashed_password,
            is_active=is_active,
            is_superadmin=is_superadmin,
            location_id=location_id,
        )
        return await self.save(user)

    async def update_user(self, user: User, **values) -> User:
        self.apply_changes(user, {k: v for k, v in values.items() if v is not None})
        await self.commit()
        await self.session.refresh(user)
        return user

    async def delete_user(self, user_id: UUID) -> None:
        stmt = delete(User).where(User.id == user_id, User.tenant_id == self.tenant_id)
        await self.execute(stmt)
        await self.commit()

    async def list_roles_for_user(self, user_id: UUID) -> List[Role]:
        stmt = (
            self.scoped(Role)
            .join(UserRole, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.name)
        )
        result = await self.scalars(stmt)
        return list(result)

    # Roles
    async def list_roles(self, limit: int = 100, offset: int = 0) -> Tuple[List[Role], int]:
        return await self.paginate(self.scoped(Role).order_by(Role.name), limit, offset)

    async def get_role_by_id(self, role_id: UUID) -> Optional[Role]:
        stmt = self.scoped(Role).where(Role.id == role_id)
        return await self.scalar_one_or_none(stmt)

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        stmt = self.scoped(Role).where(Role.name == name)
        return await self.scalar_one_or_none(stmt)

    async def create_role(self, name: str, description: Optional[str] = None) -> Role:
        return await self.save(Role(name=name, description=description))

    async def ensure_role(self, name: str, description: Optional[str] = None) -> Role:
        role = await self.get_role_by_name(name)
        if role:
            return role
        return await self.create_role(name, description)

    async def delete_role(self, role_id: UUID) -> None:
        stmt = delete(Role).where(Role.id == role_id, Role.tenant_id == self.tenant_id)
        await self.execute(stmt)
        await self.commit()

    # Associations
    async def assign_role_to_user(self, user_id: UUID, role_id: UUID) -> None:
        stmt = self.scoped(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        if await self.scalar_one_or_none(stmt):
            return
        await self.add(UserRole(user_id=user_id, role_id=role_id))
        await self.commit()

    async def remove_role_from_user(self, user_id: UUID, role_id: UUID) -> None:
        stmt = delete(UserRole).where(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
            UserRole.tenant_id == self.tenant_id,
        )
        await self.execute(stmt)
        await self.commit()
