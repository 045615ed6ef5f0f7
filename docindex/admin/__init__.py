"""Administrative commands and service wiring."""

from docindex.admin.service import AdminService, build_admin_service

__all__ = [
    "AdminService",
    "build_admin_service",
]
