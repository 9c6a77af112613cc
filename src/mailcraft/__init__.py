"""Mail model, maildir store and send pipeline for a notmuch-based mail client."""

__version__ = "0.1.0"
