"""auth/ -- Accounts, signed session tokens, and the session lifecycle for UserGate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
Only auth/dependencies.py may import fastapi.
"""
