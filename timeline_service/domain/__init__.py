"""
Domain layer: entities and collaborator contracts
"""
