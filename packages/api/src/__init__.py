# This project was developed with assistance from AI tools.
"""Garnet questionnaire workflow API."""

__version__ = "0.1.0"
