"""db/migrations/ -- Schema migrations applied by db.migrator.

One file per change, named <identifier>_<description>.py, each defining
up(connection). This __init__ is skipped by the migrator.
"""
