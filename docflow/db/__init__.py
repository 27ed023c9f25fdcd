"""DocFlow storage layer — SQLAlchemy models, engines and transactional regions."""
