"""Infrastructure: persistence, backend clients, security, audit sink."""
