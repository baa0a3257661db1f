"""
Agents for SecGuard.
"""
