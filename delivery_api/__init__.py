"""
Delivery API — order assignment, lifecycle tracking and notifications.
"""
