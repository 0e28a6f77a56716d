"""Domain services: routing, dispatch, approvals and response handling."""
