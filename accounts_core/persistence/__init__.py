"""
Accounts core persistence layer using SQLAlchemy
"""
