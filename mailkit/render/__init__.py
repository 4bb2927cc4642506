"""MIME rendering for built messages."""
