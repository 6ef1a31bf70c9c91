"""Domain layer.

This package should not depend on application or infrastructure code.
"""

from .comment_repository import CommentRepository
from .invoice_gateway import InvoiceGateway

__all__ = ["CommentRepository", "InvoiceGateway"]
