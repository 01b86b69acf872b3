"""Pure helpers shared by models and services."""
