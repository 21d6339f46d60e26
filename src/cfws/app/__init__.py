"""
Example front-ends built on the cfws client.
"""
