"""
                MenuQR

Backend for a restaurant digital-menu service: owners manage dated
menus, sections and dishes; customers scan a QR code to read the
current menu and place orders.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
