"""Request middleware: JWT auth, access guard, logging, rate limits."""
