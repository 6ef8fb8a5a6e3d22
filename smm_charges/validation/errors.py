"""Fatal data errors raised by pipeline stages."""


class DataIntegrityError(ValueError):
    """A condition that must stop the pipeline (bad keys, bad charges, schema drift)."""
