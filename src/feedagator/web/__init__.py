"""HTTP surface — FastAPI app, routes, and response models."""
