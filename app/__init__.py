"""
HTTP transport for the contact service.
"""
