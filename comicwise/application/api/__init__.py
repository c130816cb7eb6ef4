"""
API Layer

HTTP routes and middleware.
"""
