class UpdownError(Exception):
    """Base class for errors reported by the up/down commands."""
