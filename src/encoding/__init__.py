"""Wire encodings for file payloads."""
