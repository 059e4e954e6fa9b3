"""
Exceptions raised by speedfusion.
"""


class ConfigurationError(ValueError):
    """A session or filter was configured with unusable values."""
