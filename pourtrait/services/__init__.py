"""Services for the Pourtrait application."""
