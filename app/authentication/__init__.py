"""
Authentication application.

Key components:
    - User model: Custom email-based user (authentication.models)
    - UserDirectory: email <-> user id resolution (authentication.directory)

Session and token issuance happen outside this service; API views only
validate bearer tokens.
"""
