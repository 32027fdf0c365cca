"""
                    Bistro

Restaurant ordering and reservation backend: menu, cart pricing,
order lifecycle, table reservations and live admin notifications
over WebSocket.

Author: Your Name
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Your Name"
