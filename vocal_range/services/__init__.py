"""Services: pitch estimation, audio sources and the advisory client."""
