"""
Application Layer

FastAPI application factory, routes and middleware.
"""
