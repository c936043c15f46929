"""
                        Services Module

Business logic shared by the route modules, with the hybrid Mock/Real
pattern for anything that talks to a third party.

Services:
    - menu_service: current-menu resolution and menu tree assembly
    - email: SendGrid transactional email
    - storage: Cloudinary image hosting plus the local upload mirror
    - excel_manager: Process-safe Excel order ledger
"""

from menuqr.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
