"""Uvicorn import shim for the inventory API.

This module exposes 'app' so you can run:
    uvicorn main:app --host 0.0.0.0 --port 3001

It delegates to the canonical application defined in src.inventory.main:app.
"""
from __future__ import annotations

from src.inventory.__main__ import main
from src.inventory.main import app as app  # noqa: F401

if __name__ == "__main__":
    main()
