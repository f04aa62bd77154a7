"""Schema model, validation, topology and compilation."""
