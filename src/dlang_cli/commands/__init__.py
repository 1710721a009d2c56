"""DomainLang CLI commands."""
