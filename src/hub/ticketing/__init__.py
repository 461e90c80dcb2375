"""Unified ticketing entities -- canonical tables, schemas, registry and services.

Provides SQLAlchemy models for tickets, accounts, contacts, teams, users
and attachments, their pydantic input/output schemas, the EntitySpec
registry the sync core is driven by, and per-entity services.
"""
