"""Lemma - workspace storage engine with git synchronization."""
