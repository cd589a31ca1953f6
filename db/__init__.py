"""db/ -- Data access layer and schema migrations.

Layer rule: db/ imports only from core/ plus stdlib and third-party
libraries. auth/ and api/ import from db/, not the other way around.
"""
