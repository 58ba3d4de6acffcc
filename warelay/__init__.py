"""
warelay - WhatsApp to operator-group relay.
"""

__version__ = "0.1.0"
__logo__ = "📨"
