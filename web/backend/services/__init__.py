"""Service layer for the web application."""

from .notification_service import NotificationServiceWrapper

__all__ = ['NotificationServiceWrapper']
