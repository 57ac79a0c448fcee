"""HTTP server for the chat stream and the action collaborator endpoints."""
