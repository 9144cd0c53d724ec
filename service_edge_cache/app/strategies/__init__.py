"""
Content-category caching strategies and the registry that dispatches to them.
"""
