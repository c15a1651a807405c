"""wabot: a self-healing WhatsApp session that answers messages with an AI."""

__version__ = "0.1.0"
