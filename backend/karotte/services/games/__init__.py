"""Game domain services: words, scoring, the session engine and history.

Everything here except ``scheduler`` and the SQL stores is plain Python,
imported by HTTP routes and socket handlers, keeping transport concerns
separated from core game mechanics.
"""
