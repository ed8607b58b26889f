class FormatError(ValueError):
    """A procfs source did not have the expected layout or values."""
