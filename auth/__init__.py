"""auth/ -- Token authentication and authorization package for SessionGate.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
The single exception is auth/dependencies.py, which binds the access gate to
FastAPI's Depends() system and therefore imports fastapi itself.
"""
