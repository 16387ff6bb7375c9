"""
Infrastructure implementations: SSH clients, terminal control, networking,
configuration and logging.
"""
