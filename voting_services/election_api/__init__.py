"""Election API service: REST endpoints, election rules and PostgreSQL store."""
