"""
API routers for Mechmate.
"""
