"""
WAF Query Bot
Natural-language WAF log search for chat channels, backed by Athena
"""

__version__ = "1.0.0"
