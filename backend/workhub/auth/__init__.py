# workhub/auth/__init__.py
"""
Authentication modules for Workhub.

This package contains:
- identity.py: provider-agnostic ExternalIdentity model
- errors.py: auth error taxonomy shared by services and routes
- cognito.py: Cognito access token verification
- providers/: identity provider adapters (Supabase, Cognito)
"""
from workhub.auth.identity import ExternalIdentity

__all__ = ["ExternalIdentity"]
