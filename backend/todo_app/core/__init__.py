"""
Core application modules.
Contains essential infrastructure components:
- db: Database configuration and connection management
- security: Password hashing and session token issue/verify
- csrf: Anti-forgery tokens for browser form submissions
- middleware: Security headers and rate limiting
- errors: Caller-visible error variants
"""
