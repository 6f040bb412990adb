"""
Core utilities shared across the cardauth service.

This package hosts configuration, structured logging, password hashing and
the per-IP rate limiter. Services and routers depend on these primitives
instead of reading os.environ or configuring logging themselves.
"""
