"""Relational store adapters for the account import pipeline."""

from conta_import.store.base import ContaStore
from conta_import.store.memory import InMemoryContaStore
from conta_import.store.postgres import PostgresContaStore

__all__ = ["ContaStore", "InMemoryContaStore", "PostgresContaStore"]
