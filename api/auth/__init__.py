"""
User accounts, JWT access tokens and refresh-token sessions.
"""
