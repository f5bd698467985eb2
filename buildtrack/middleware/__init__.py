from .rate_limit import limiter, upload_rate_limit

__all__ = ['limiter', 'upload_rate_limit']
