"""HTTP routers for the clubhub API."""
