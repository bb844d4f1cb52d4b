"""
Mutual-friend social graph service.
"""
