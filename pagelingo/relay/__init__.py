# pagelingo/relay/__init__.py
"""
HTTP relay that keeps provider credentials off the client.
"""
