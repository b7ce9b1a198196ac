"""Satis webhook receiver.

Rebuilds a Satis package repository when GitHub, GitLab, Bitbucket or any
other sender posts a webhook.
"""

__version__ = "1.0.0"
