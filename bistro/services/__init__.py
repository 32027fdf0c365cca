"""
                        Services Module

Business logic behind the API routes. Services take the store, the
notification bus and the caller's identity; they never touch HTTP.

Services:
    - orders: Order submission and lifecycle transitions
    - reservations: Table bookings
    - menu: Categories, menu items, branding and locations
    - auth: Registration, login and session identities
    - pricing / cart: Totals and the client-side basket
    - payment: PayPal checkout (mock in development)
    - notifications: Live event bus for dashboards
    - excel_manager: Locked Excel report writes
"""

from bistro.services.excel_manager import ExcelManager
from bistro.services.pricing import PriceBreakdown, PricingRules, calculate_totals

__all__ = ["ExcelManager", "PriceBreakdown", "PricingRules", "calculate_totals"]
