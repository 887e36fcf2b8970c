"""Database package: declarative base, models and async session management."""
