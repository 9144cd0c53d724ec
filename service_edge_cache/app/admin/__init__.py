"""
Admin configuration API.
"""
