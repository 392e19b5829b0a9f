"""
HealthThreads Timeline Service
"""
