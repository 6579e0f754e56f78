"""FastAPI app for session insights."""
