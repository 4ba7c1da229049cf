"""auth/ -- Credential hashing, bearer tokens and request authorization for LedgerAPI.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or ledger/, and never reads configuration itself:
the API lifespan builds PasswordHasher, TokenService and Authenticator from
core.config.Settings and passes them around explicitly.
"""
