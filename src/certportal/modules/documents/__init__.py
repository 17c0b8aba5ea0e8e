"""
Documents module - Supporting file uploads with simulated auto-verification.
"""
