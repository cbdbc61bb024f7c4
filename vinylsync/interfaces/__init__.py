"""User-facing interfaces for vinylsync."""
