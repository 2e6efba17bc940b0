"""Service layer: auth flows, post composition and text analysis."""
