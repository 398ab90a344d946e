"""Kikichoice catalog HTTP API (FastAPI)."""
