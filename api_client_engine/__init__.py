"""API client engine: request execution pipeline for a Postman-like API testing client."""
