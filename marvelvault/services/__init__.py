"""
MarvelVault services.

Business logic for the admin set-migration console.
"""
