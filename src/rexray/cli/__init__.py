"""Typer command line front end."""
