"""Cysic verifier node fleet manager."""
