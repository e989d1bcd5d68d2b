"""
Authentication core: passwords, tokens, OTP challenges, the session
authenticator and the login flows built on them.
"""
