"""Deterministic signal generators and reference models shared by the tests."""
