"""ComicVine API access: models, rate limiting, transport, client and search."""
