"""auth/ -- Authentication and authorization package for Cinebase.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, catalog/, or ratings/.
api/ and ratings/ import from auth/, not the other way around.
"""
