"""HTTP middleware: request size limit and request ID.

Applied in main app; order matters (last added = outermost).
"""

from s3manager.middleware.request_id import RequestIDMiddleware
from s3manager.middleware.request_size_limit import RequestSizeLimitMiddleware

__all__ = ["RequestIDMiddleware", "RequestSizeLimitMiddleware"]
