"""gmarchive - archive the result of a Gmail search query into Maildir."""

__version__ = "0.1.0"
