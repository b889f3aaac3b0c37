"""
Toolkit - domain-aware utilities shared by apps.

Key components:
    - protocols.py: Collaborator interfaces (NotificationSender, EmailSender)
    - helpers.py: PII masking and money formatting
    - services/email.py: EmailService (Django mail)

Note:
    This package has no models and is not an installed Django app.
"""
