"""Synchronization of a Gmail query into a Maildir archive."""
