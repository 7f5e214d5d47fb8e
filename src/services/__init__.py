"""Matching and chatbot services used by handlers.

Services are imported lazily by handlers so that boto3 and SQLAlchemy are
only loaded when the first request actually needs them.
"""

# Do NOT import services here - use lazy loading in handlers instead
