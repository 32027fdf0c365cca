"""
Menu Service

Categories, menu items, restaurant branding and locations. Reads are
public; every write requires an administrator. Menu item changes are
broadcast so open dashboards and menus refresh without polling.

Author: Your Name
Version: 1.0.0
"""

import logging
from typing import Any, Optional

from bistro.core.errors import NotFound, ValidationError
from bistro.schemas import (
    Category,
    CategoryWrite,
    Identity,
    Location,
    LocationCreate,
    LocationUpdate,
    MenuItem,
    MenuItemCreate,
    MenuItemUpdate,
    RestaurantSettings,
    RestaurantSettingsUpdate,
)
from bistro.services.access import require_admin
from bistro.services.notifications import EventType, NotificationBus, NotificationEvent
from bistro.storage.base import BaseStore

logger = logging.getLogger(__name__)


def _changes(update, nullable: frozenset = frozenset()) -> dict[str, Any]:
    """Fields the client actually sent; null only counts where allowed."""
    changes = {
        field: value
        for field, value in update.model_dump(exclude_unset=True).items()
        if value is not None or field in nullable
    }
    if not changes:
        raise ValidationError("Nothing to update")
    return changes


class MenuService:

    def __init__(self, store: BaseStore, bus: NotificationBus):
        self.store = store
        self.bus = bus

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def list_categories(self) -> list[Category]:
        return await self.store.list_categories()

    async def get_category(self, category_id: int) -> Category:
        category = await self.store.get_category(category_id)
        if category is None:
            raise NotFound(f"Category {category_id} not found")
        return category

    async def create_category(self, data: CategoryWrite, identity: Optional[Identity]) -> Category:
        require_admin(identity)
        category = await self.store.create_category(data.name.strip())
        logger.info(f"Category #{category.id} '{category.name}' created")
        return category

    async def update_category(
        self, category_id: int, data: CategoryWrite, identity: Optional[Identity]
    ) -> Category:
        require_admin(identity)
        category = await self.store.update_category(category_id, data.name.strip())
        if category is None:
            raise NotFound(f"Category {category_id} not found")
        return category

    async def delete_category(self, category_id: int, identity: Optional[Identity]) -> None:
        require_admin(identity)
        if not await self.store.delete_category(category_id):
            raise NotFound(f"Category {category_id} not found")
        logger.info(f"Category #{category_id} deleted")

    # =========================================================================
    # MENU ITEMS
    # =========================================================================

    async def list_menu_items(self) -> list[MenuItem]:
        return await self.store.list_menu_items()

    async def get_menu_item(self, item_id: int) -> MenuItem:
        item = await self.store.get_menu_item(item_id)
        if item is None:
            raise NotFound(f"Menu item {item_id} not found")
        return item

    async def list_menu_items_by_category(self, category_id: int) -> list[MenuItem]:
        await self.get_category(category_id)
        return await self.store.list_menu_items_by_category(category_id)

    async def create_menu_item(self, data: MenuItemCreate, identity: Optional[Identity]) -> MenuItem:
        require_admin(identity)
        await self._check_category(data.category_id)
        item = await self.store.create_menu_item(data)
        logger.info(f"Menu item #{item.id} '{item.name}' created at {item.price}")
        await self._notify(EventType.MENU_ITEM_CREATED, item.model_dump(mode="json", by_alias=True))
        return item

    async def update_menu_item(
        self, item_id: int, update: MenuItemUpdate, identity: Optional[Identity]
    ) -> MenuItem:
        require_admin(identity)
        changes = _changes(update, nullable=frozenset({"image_url"}))
        if "category_id" in changes:
            await self._check_category(changes["category_id"])

        item = await self.store.update_menu_item(item_id, changes)
        if item is None:
            raise NotFound(f"Menu item {item_id} not found")
        await self._notify(EventType.MENU_ITEM_UPDATED, item.model_dump(mode="json", by_alias=True))
        return item

    async def set_menu_item_image(
        self, item_id: int, image_url: str, identity: Optional[Identity]
    ) -> MenuItem:
        require_admin(identity)
        item = await self.store.update_menu_item(item_id, {"image_url": image_url})
        if item is None:
            raise NotFound(f"Menu item {item_id} not found")
        await self._notify(EventType.MENU_ITEM_UPDATED, item.model_dump(mode="json", by_alias=True))
        return item

    async def delete_menu_item(self, item_id: int, identity: Optional[Identity]) -> None:
        require_admin(identity)
        if not await self.store.delete_menu_item(item_id):
            raise NotFound(f"Menu item {item_id} not found")
        logger.info(f"Menu item #{item_id} deleted")
        await self._notify(EventType.MENU_ITEM_DELETED, {"id": item_id})

    async def _check_category(self, category_id: int) -> None:
        if await self.store.get_category(category_id) is None:
            raise ValidationError(
                "Unknown category",
                details={"categoryId": f"Category {category_id} does not exist"},
            )

    # =========================================================================
    # RESTAURANT SETTINGS
    # =========================================================================

    async def get_settings(self) -> RestaurantSettings:
        settings = await self.store.get_restaurant_settings()
        if settings is None:
            raise NotFound("Restaurant settings not configured")
        return settings

    async def update_settings(
        self, update: RestaurantSettingsUpdate, identity: Optional[Identity]
    ) -> RestaurantSettings:
        require_admin(identity)
        changes = _changes(update, nullable=frozenset({"logo_url", "primary_color"}))
        settings = await self.store.update_restaurant_settings(changes)
        logger.info(f"Restaurant settings updated: {sorted(changes)}")
        return settings

    async def set_logo(self, logo_url: str, identity: Optional[Identity]) -> RestaurantSettings:
        require_admin(identity)
        return await self.store.update_restaurant_settings({"logo_url": logo_url})

    # =========================================================================
    # LOCATIONS
    # =========================================================================

    async def list_locations(self) -> list[Location]:
        return await self.store.list_locations()

    async def get_location(self, location_id: int) -> Location:
        location = await self.store.get_location(location_id)
        if location is None:
            raise NotFound(f"Location {location_id} not found")
        return location

    async def create_location(self, data: LocationCreate, identity: Optional[Identity]) -> Location:
        require_admin(identity)
        return await self.store.create_location(data)

    async def update_location(
        self, location_id: int, update: LocationUpdate, identity: Optional[Identity]
    ) -> Location:
        require_admin(identity)
        location = await self.store.update_location(location_id, _changes(update))
        if location is None:
            raise NotFound(f"Location {location_id} not found")
        return location

    async def delete_location(self, location_id: int, identity: Optional[Identity]) -> None:
        require_admin(identity)
        if not await self.store.delete_location(location_id):
            raise NotFound(f"Location {location_id} not found")

    async def _notify(self, event_type: EventType, payload: dict[str, Any]) -> None:
        try:
            await self.bus.publish(NotificationEvent.of(event_type, payload))
        except Exception:
            logger.exception(f"Failed to publish {event_type.value}")
