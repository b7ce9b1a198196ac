"""Webhook receiver adapters.

Provides HTTP endpoints for source-control hosts to trigger rebuilds:
- Receive push deliveries from GitHub, GitLab and Bitbucket
- Accept plain POSTs from any other sender as a full rebuild
"""
