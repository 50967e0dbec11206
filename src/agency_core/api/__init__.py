"""FastAPI application for Agency Core."""
