"""Database layer: declarative base, column types, engine, immutability listeners."""
