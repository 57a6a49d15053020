"""
Content-addressed asset storage, remote fetching and media checks.
"""
