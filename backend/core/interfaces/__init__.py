# Interfaces (Abstract Contracts)
# Adapters implement these interfaces
from .services import EmailService, GatewayOrder, PaymentGateway

__all__ = [
    "EmailService",
    "GatewayOrder",
    "PaymentGateway",
]
