"""auth/ -- File-backed authentication realm.

Layer rule: auth/ imports from core/ (config) and cache/ (the principal map).
core/ and cache/ never import from auth/ at runtime.
Only auth/dependencies.py imports fastapi.
"""
