from .router import admin_router, cron_router

__all__ = ["admin_router", "cron_router"]
