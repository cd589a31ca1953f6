"""auth/ -- Identity, credentials and sessions for Bancarios.

Layer rule: auth/ imports from core/ and db/ plus stdlib and third-party
libraries. It does NOT import from api/. api/ imports from auth/, not the
other way around.
"""
