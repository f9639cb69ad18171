"""Domain core: models, interfaces, errors."""
