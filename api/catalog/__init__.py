"""
Games and books: shared CRUD and search.
"""
