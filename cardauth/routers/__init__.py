"""
FastAPI routers grouped by feature (auth, cards, health).

Routers translate typed service outcomes into HTTP responses and never touch
the database directly.
"""
