"""Kakeibo: household finance backend on Supabase."""

__version__ = "0.1.0"
