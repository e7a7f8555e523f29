"""Instruction templates shipped as package data."""
