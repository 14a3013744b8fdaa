"""auth/ -- Credentials, identity storage, and sessions for authgate.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or resources/.
api/ imports from auth/, not the other way around.
"""
