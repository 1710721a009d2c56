"""DomainLang CLI - dependency resolution and workspace management for DomainLang models."""

__version__ = "0.1.0"
