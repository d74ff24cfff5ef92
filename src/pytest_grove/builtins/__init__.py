"""Built-in operators shipped with pytest-grove."""
