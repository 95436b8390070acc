"""Request hooks and route decorators."""
