"""Constrain image widths in pull request descriptions."""
