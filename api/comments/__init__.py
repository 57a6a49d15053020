"""
Comments on games and books.
"""
