from .logging_gateway import LoggingNotificationGateway

__all__ = ["LoggingNotificationGateway"]
