"""HealthMate: AI diet suggestions and plans, health chat, and report summaries."""
