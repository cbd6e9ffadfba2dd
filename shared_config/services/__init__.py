"""
Shared Config Services

- config - the store, its sync strategies and the background host service
"""
