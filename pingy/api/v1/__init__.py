"""
API v1 router exports.
Provides API endpoint routers.
"""
from pingy.api.v1 import messages, push

__all__ = [
    "messages",
    "push",
]
