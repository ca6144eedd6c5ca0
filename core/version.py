"""Single source of the SecretKeeper version string."""

__version__ = "0.1.0"
