"""linkhub: link Facebook Pages and WhatsApp numbers to user profiles."""

__version__ = "1.0.0"
