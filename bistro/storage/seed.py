"""
Default Store Contents

The administrator account from configuration and, when ``seed_demo_data``
is on, the demo menu, restaurant settings and locations a fresh install
starts with. Seeding goes through the public store API, so every backend
gets identical data and ids.
"""

import logging
from decimal import Decimal

from werkzeug.security import generate_password_hash

from bistro.core.config import Settings
from bistro.schemas import LocationCreate, MenuItemCreate, UserRole

logger = logging.getLogger(__name__)


DEFAULT_CATEGORIES = ["Starters", "Main Courses", "Desserts", "Drinks"]

_IMAGE_BASE = "https://images.unsplash.com"

# (name, description, price, image path) - all main courses
DEFAULT_MENU_ITEMS = [
    (
        "Grilled Salmon",
        "Fresh Atlantic salmon with asparagus and lemon butter",
        Decimal("24.99"),
        "/photo-1519708227418-c8fd9a32b7a2?auto=format&fit=crop&w=500&h=300",
    ),
    (
        "Pasta Pomodoro",
        "Homemade pasta with cherry tomatoes, basil and parmesan",
        Decimal("18.50"),
        "/photo-1556761223-4c4282c73f77?auto=format&fit=crop&w=500&h=300",
    ),
    (
        "Filet Mignon",
        "Premium cut steak with roasted vegetables and red wine sauce",
        Decimal("32.99"),
        "/photo-1600891964092-4316c288032e?auto=format&fit=crop&w=500&h=300",
    ),
]

DEFAULT_LOCATIONS = [
    LocationCreate(
        name="Downtown",
        address="123 Main Street, City Center",
        phone="(123) 456-7890",
        opening_hours="11:00 AM - 10:00 PM",
    ),
    LocationCreate(
        name="Uptown",
        address="456 Park Avenue, Uptown District",
        phone="(123) 456-7891",
        opening_hours="11:00 AM - 11:00 PM",
    ),
]


async def seed_store(store, settings: Settings) -> None:
    """Create the admin account and, if enabled, the demo data. Idempotent."""
    if await store.get_user_by_username(settings.admin_username) is None:
        await store.create_user(
            username=settings.admin_username,
            email=settings.admin_email,
            full_name="Admin User",
            password_hash=generate_password_hash(settings.admin_password),
            role=UserRole.ADMIN,
        )
        logger.info(f"Seeded administrator '{settings.admin_username}'")

    if not settings.seed_demo_data or await store.list_categories():
        return

    categories = {}
    for name in DEFAULT_CATEGORIES:
        categories[name] = await store.create_category(name)

    mains = categories["Main Courses"]
    for name, description, price, image in DEFAULT_MENU_ITEMS:
        await store.create_menu_item(
            MenuItemCreate(
                name=name,
                description=description,
                price=price,
                image_url=_IMAGE_BASE + image,
                category_id=mains.id,
            )
        )

    await store.update_restaurant_settings(
        {
            "name": settings.app_name,
            "logo_url": "",
            "primary_color": "#8D4E00",
            "theme_settings": {},
        }
    )

    for location in DEFAULT_LOCATIONS:
        await store.create_location(location)

    logger.info(
        f"Seeded demo data: {len(DEFAULT_CATEGORIES)} categories, "
        f"{len(DEFAULT_MENU_ITEMS)} menu items, {len(DEFAULT_LOCATIONS)} locations"
    )
