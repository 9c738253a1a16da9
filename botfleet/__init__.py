"""
botfleet - rule-driven auto-replies and webhooks for a fleet of chat bots.
"""

__version__ = "0.1.0"
__logo__ = "🤖"
