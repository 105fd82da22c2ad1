"""HTTP layer: dependencies, middleware, pages and versioned endpoints."""
