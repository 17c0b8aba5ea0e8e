"""
Certificates module - Issued certificates and public verification.
"""
