"""auth/ -- Identity and session package for Vet1Stop.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from resources/.
"""
