"""Payment adapters for orders and subscription billing."""

from .razorpay_adapter import RazorpayAdapter, create_razorpay_adapter

__all__ = [
    "RazorpayAdapter",
    "create_razorpay_adapter",
]
