"""bento-profile: grid placement, profile storage and auto-save for bento grid profile pages."""

__version__ = "0.4.0"
