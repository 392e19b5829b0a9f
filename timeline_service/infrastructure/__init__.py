"""
Infrastructure layer: PostgreSQL repositories
"""
