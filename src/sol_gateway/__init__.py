"""HTTP gateway between automation agents and Notion workspace databases."""

__version__ = "3.1.0"
